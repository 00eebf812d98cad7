import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_CHANNEL_CONFIG_FILE = Path(__file__).resolve().parents[1] / "data" / "channels.json"


class ChannelConfigError(RuntimeError):
    pass


class BoostRule(BaseModel):
    special: str
    references: list[str] = Field(default_factory=list)


class ChannelConfig(BaseModel):
    roster: list[str]
    # Live channels listed here are shown first, in this order.
    priority: list[str] = Field(default_factory=list)
    pin_rules: list[str] = Field(default_factory=list)
    boost_rules: list[BoostRule] = Field(default_factory=list)

    @field_validator("roster")
    @classmethod
    def roster_unique_and_non_empty(cls, value: list[str]) -> list[str]:
        cleaned = [ch.strip() for ch in value if ch and ch.strip()]
        if not cleaned:
            raise ValueError("roster must list at least one channel")
        seen: set[str] = set()
        for ch in cleaned:
            key = ch.lower()
            if key in seen:
                raise ValueError(f"duplicate roster channel: {ch}")
            seen.add(key)
        return cleaned

    def boost_pairs(self) -> list[tuple[str, list[str]]]:
        return [(rule.special, list(rule.references)) for rule in self.boost_rules]

    def unknown_rule_channels(self) -> list[str]:
        known = {ch.lower() for ch in self.roster}
        named = list(self.priority) + list(self.pin_rules)
        for rule in self.boost_rules:
            named.append(rule.special)
            named.extend(rule.references)
        unknown: list[str] = []
        for ch in named:
            if ch.lower() not in known and ch not in unknown:
                unknown.append(ch)
        return unknown


def load_channel_config(path: Path | str = DEFAULT_CHANNEL_CONFIG_FILE) -> ChannelConfig:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ChannelConfigError(f"Cannot read channel config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ChannelConfigError(f"Channel config {path} is not valid JSON: {exc}") from exc

    try:
        config = ChannelConfig.model_validate(raw)
    except ValidationError as exc:
        raise ChannelConfigError(f"Invalid channel config {path}: {exc}") from exc

    unknown = config.unknown_rule_channels()
    if unknown:
        logger.warning("Channel rules mention channels outside the roster: {}", ", ".join(unknown))
    logger.info(
        "Loaded {} channels, {} pin rules, {} boost rules from {}",
        len(config.roster),
        len(config.pin_rules),
        len(config.boost_rules),
        path,
    )
    return config
