"""
Player records and alt-account linking.

An admin can declare accounts as alts of a main account. Alt candidates may be
given as UUIDs or in-game names; each is resolved to a UUID before anything is
written. A rejected update raises before the first write.

Known gap: only direct self-reference and one-level chains (an alt that has
alts of its own, or a main that is itself an alt) are detected. Longer cycles
are not searched for.
"""
import datetime
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from .errors import AltAccountError, StoreError, ValidationError
from .extensions import db
from .identity import lookup_name, lookup_uuid
from .models import Player
from .utils import clean_list, is_uuid, normalize_uuid

# Display priority for roles; ids not listed here sort after these
ROLE_ORDER = (
    "owner",
    "admin",
    "developer",
    "moderator",
    "helper",
    "champion",
    "youtuber",
    "contributor",
)


@dataclass
class PlayerForm:
    current_ign: str = ""
    uuid: str = ""
    past_igns: list = field(default_factory=list)
    role_ids: list = field(default_factory=list)
    alt_accounts: list = field(default_factory=list)


def sort_roles_by_priority(role_ids):
    def key(role_id):
        try:
            return (0, ROLE_ORDER.index(role_id))
        except ValueError:
            return (1, 0)
    return sorted(role_ids, key=key)


def primary_role(player):
    ordered = sort_roles_by_priority(player.role_ids)
    return ordered[0] if ordered else None


def search_players(players, term):
    term = (term or "").strip().lower()
    if not term:
        return list(players)
    return [
        p for p in players
        if term in (p.current_ign or "").lower() or any(term in ign.lower() for ign in p.past_igns)
    ]


def find_by_name(players, name):
    """Player whose current or past name equals `name`, ignoring case."""
    wanted = name.strip().lower()
    for p in players:
        if (p.current_ign or "").lower() == wanted:
            return p
    for p in players:
        if any(ign.lower() == wanted for ign in p.past_igns):
            return p
    return None


# ============================================================
# Alt accounts
# ============================================================
def resolve_alt(candidate, players):
    """
    Resolve one alt candidate to a canonical UUID.

    A UUID is taken as-is (normalized); a name is matched against known
    players' current and past names first, then looked up remotely.
    """
    if is_uuid(candidate):
        return normalize_uuid(candidate)
    player = find_by_name(players, candidate)
    if player is not None:
        return normalize_uuid(player.uuid)
    return lookup_uuid(candidate)


def validate_alts(main_uuid, main_ign, candidates, players, main_player=None):
    """
    Check an alt list for `main_uuid` and return the resolved UUIDs.

    Raises:
        AltAccountError: self-reference, duplicates, or a chain of alts
    """
    cleaned = clean_list(candidates)
    main_uuid = normalize_uuid(main_uuid)
    main_ign = (main_ign or "").strip().lower()

    for c in cleaned:
        if (main_ign and c.lower() == main_ign) or (is_uuid(c) and normalize_uuid(c) == main_uuid):
            raise AltAccountError("A player cannot be their own alt account")

    if cleaned and main_player is not None and main_player.main_account:
        raise AltAccountError("An alt account cannot have alt accounts of its own")

    resolved = [resolve_alt(c, players) for c in cleaned]
    if main_uuid in resolved:
        raise AltAccountError("A player cannot be their own alt account")
    if len(set(resolved)) != len(resolved):
        raise AltAccountError("Duplicate alt accounts are not allowed")

    by_uuid = {normalize_uuid(p.uuid): p for p in players}
    for alt_uuid, candidate in zip(resolved, cleaned):
        alt = by_uuid.get(alt_uuid)
        if alt is None:
            continue
        if main_player is not None and main_player.main_account and normalize_uuid(main_player.main_account) == alt_uuid:
            raise AltAccountError(f"{candidate} is already the main account of this player")
        if alt.main_account and normalize_uuid(alt.main_account) != main_uuid:
            raise AltAccountError(f"{candidate} is already linked to another main account")
        if alt.alt_accounts:
            raise AltAccountError(f"{candidate} has alt accounts of its own")
    return resolved


# ============================================================
# Saving
# ============================================================
def save_player(form: PlayerForm, player_id=None):
    """
    Create or update a player and link its alt accounts.

    Every lookup and check runs before the first write; the writes happen in
    one commit. Returns (player, created).
    """
    players = Player.query.all()
    ign = (form.current_ign or "").strip()
    uuid = (form.uuid or "").strip()

    if not ign and not uuid:
        raise ValidationError("Either Current IGN or UUID is required")
    if uuid and not is_uuid(uuid):
        raise ValidationError("Invalid UUID provided")

    target = None
    if player_id:
        target = db.session.get(Player, player_id)
        if target is None:
            raise ValidationError("Player not found")

    if uuid and not ign:
        ign = lookup_name(uuid)
    if ign and not uuid:
        uuid = lookup_uuid(ign)
    uuid = normalize_uuid(uuid)

    by_uuid = {normalize_uuid(p.uuid): p for p in players}
    same_uuid = by_uuid.get(uuid)
    if target is None:
        target = same_uuid
    elif same_uuid is not None and same_uuid.id != target.id:
        raise ValidationError(f"Another player already uses UUID {uuid}")

    cleaned_alts = clean_list(form.alt_accounts)
    resolved = validate_alts(uuid, ign, cleaned_alts, players, main_player=target)

    new_alt_names = {}
    for alt_uuid, candidate in zip(resolved, cleaned_alts):
        if alt_uuid not in by_uuid:
            new_alt_names[alt_uuid] = candidate if not is_uuid(candidate) else lookup_name(alt_uuid)

    role_ids = sort_roles_by_priority(clean_list(form.role_ids))
    past_igns = clean_list(form.past_igns)
    now = datetime.datetime.utcnow()

    created = target is None
    if created:
        target = Player(uuid=uuid, current_ign=ign)
        db.session.add(target)
        previous_alts = []
    else:
        previous_alts = [normalize_uuid(a) for a in target.alt_accounts if is_uuid(a)]
        old_ign = target.current_ign
        if old_ign and old_ign.lower() != ign.lower() and old_ign.lower() not in (i.lower() for i in past_igns):
            past_igns.append(old_ign)

    target.current_ign = ign
    target.uuid = uuid
    target.past_igns = past_igns
    target.role = ",".join(role_ids) or None
    target.alt_accounts = resolved
    target.last_updated = now

    for old_uuid in previous_alts:
        if old_uuid in resolved:
            continue
        old_alt = by_uuid.get(old_uuid)
        if old_alt is not None and old_alt.main_account and normalize_uuid(old_alt.main_account) == uuid:
            old_alt.main_account = None
            old_alt.last_updated = now

    for alt_uuid in resolved:
        alt = by_uuid.get(alt_uuid)
        if alt is None:
            alt = Player(uuid=alt_uuid, current_ign=new_alt_names[alt_uuid])
            db.session.add(alt)
        alt.main_account = uuid
        alt.last_updated = now

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError(f"Failed to save player: {e}") from e
    return target, created


def delete_player(player_id):
    """Delete a player and unlink it from its main or alts."""
    player = db.session.get(Player, player_id)
    if player is None:
        raise ValidationError("Player not found")

    uuid = normalize_uuid(player.uuid)
    for other in Player.query.all():
        if other.id == player.id:
            continue
        if other.main_account and normalize_uuid(other.main_account) == uuid:
            other.main_account = None
        if uuid in [normalize_uuid(a) for a in other.alt_accounts if is_uuid(a)]:
            other.alt_accounts = [a for a in other.alt_accounts if not (is_uuid(a) and normalize_uuid(a) == uuid)]

    try:
        db.session.delete(player)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreError(f"Failed to delete player: {e}") from e
