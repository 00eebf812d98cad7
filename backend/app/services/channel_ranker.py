from typing import Iterable, Sequence


def partition_roster(
    roster: Sequence[str],
    live_set: Iterable[str],
    priority: Sequence[str] = (),
) -> tuple[list[str], list[str]]:
    """
    Split the roster into (live, offline), both keeping roster casing.
    Offline keeps roster order. Live follows `priority` first, then roster order.
    """
    live_keys = {ch.lower() for ch in live_set}
    live = [ch for ch in roster if ch.lower() in live_keys]
    offline = [ch for ch in roster if ch.lower() not in live_keys]

    if priority:
        rank = {}
        for idx, ch in enumerate(priority):
            rank.setdefault(ch.lower(), idx)
        fallback = len(rank)
        # sorted() is stable, so unranked channels stay in roster order
        live = sorted(live, key=lambda ch: rank.get(ch.lower(), fallback))

    return live, offline


def find_pinned(live: Sequence[str], pin_rules: Sequence[str]) -> str | None:
    by_key = {ch.lower(): ch for ch in live}
    for rule in pin_rules:
        hit = by_key.get(rule.lower())
        if hit is not None:
            return hit
    return None


def apply_boost(seq: Sequence[str], special: str, references: Sequence[str]) -> list[str]:
    """
    Move `special` to just before the earliest reference present in `seq`.
    No-op when `special` is absent, no reference is present, or `special` is already ahead.
    """
    keys = [ch.lower() for ch in seq]
    special_key = special.lower()
    if special_key not in keys:
        return list(seq)

    ref_keys = {ref.lower() for ref in references}
    ref_positions = [idx for idx, key in enumerate(keys) if key in ref_keys and key != special_key]
    if not ref_positions:
        return list(seq)

    target_index = min(ref_positions)
    current_index = keys.index(special_key)
    if current_index < target_index:
        return list(seq)

    result = list(seq)
    moved = result.pop(current_index)
    result.insert(target_index, moved)
    return result


def apply_boosts(seq: Sequence[str], boost_rules: Sequence[tuple[str, Sequence[str]]]) -> list[str]:
    result = list(seq)
    for special, references in boost_rules:
        result = apply_boost(result, special, references)
    return result


def rank_channels(
    roster: Sequence[str],
    live_set: Iterable[str],
    pin_rules: Sequence[str] = (),
    boost_rules: Sequence[tuple[str, Sequence[str]]] = (),
    priority: Sequence[str] = (),
) -> list[str]:
    """
    Final display order: optional pinned live channel, boosted live channels, then offline.
    Always a permutation of `roster`.
    """
    live, offline = partition_roster(roster, live_set, priority)

    pinned = find_pinned(live, pin_rules)
    if pinned is None:
        return apply_boosts(live, boost_rules) + offline

    rest = [ch for ch in live if ch != pinned]
    return [pinned] + apply_boosts(rest, boost_rules) + offline
