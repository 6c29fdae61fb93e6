import pytest

from tnt_history import players as players_module
from tnt_history.errors import AltAccountError, IdentityLookupError, ValidationError
from tnt_history.extensions import db
from tnt_history.models import Player
from tnt_history.players import (
    PlayerForm,
    delete_player,
    primary_role,
    save_player,
    search_players,
    sort_roles_by_priority,
    validate_alts,
)

MAIN = "11111111-1111-1111-1111-111111111111"
ALT_ONE = "22222222-2222-2222-2222-222222222222"
ALT_TWO = "33333333-3333-3333-3333-333333333333"

KNOWN = {"MainGuy": MAIN, "AltOne": ALT_ONE, "AltTwo": ALT_TWO}


@pytest.fixture(autouse=True)
def fake_identity(monkeypatch):
    def lookup_uuid(name):
        for known, uuid in KNOWN.items():
            if known.lower() == name.lower():
                return uuid
        raise IdentityLookupError(f"Invalid IGN provided: {name}")

    def lookup_name(uuid):
        for known, value in KNOWN.items():
            if value.replace("-", "") == uuid.replace("-", "").lower():
                return known
        raise IdentityLookupError(f"Invalid UUID provided: {uuid}")

    monkeypatch.setattr(players_module, "lookup_uuid", lookup_uuid)
    monkeypatch.setattr(players_module, "lookup_name", lookup_name)


def by_uuid(uuid):
    return Player.query.filter_by(uuid=uuid).first()


# ============================================================
# Roles and search
# ============================================================
def test_roles_sort_by_priority_then_unknown():
    assert sort_roles_by_priority(["helper", "custom", "owner"]) == ["owner", "helper", "custom"]


def test_primary_role_and_search(app):
    player = Player(uuid=MAIN, current_ign="MainGuy", role="helper,admin")
    player.past_igns = ["OldName"]
    assert primary_role(player) == "admin"
    assert search_players([player], "oldn") == [player]
    assert search_players([player], "zzz") == []


# ============================================================
# Saving
# ============================================================
def test_create_player_from_name(app):
    player, created = save_player(PlayerForm(current_ign="MainGuy", role_ids=["helper", "owner"]))

    assert created
    assert player.uuid == MAIN
    assert player.role == "owner,helper"


def test_create_player_from_uuid_looks_up_name(app):
    player, _ = save_player(PlayerForm(uuid=ALT_ONE.replace("-", "")))
    assert player.current_ign == "AltOne"
    assert player.uuid == ALT_ONE


def test_rename_moves_old_name_to_history(app):
    player, _ = save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN))
    player, created = save_player(PlayerForm(current_ign="NewName", uuid=MAIN), player_id=player.id)

    assert not created
    assert player.current_ign == "NewName"
    assert player.past_igns == ["MainGuy"]


def test_save_requires_name_or_uuid(app):
    with pytest.raises(ValidationError):
        save_player(PlayerForm())
    with pytest.raises(ValidationError):
        save_player(PlayerForm(uuid="not-a-uuid"))
    assert Player.query.count() == 0


def test_uuid_collision_with_another_player(app):
    first, _ = save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN))
    second, _ = save_player(PlayerForm(current_ign="AltOne", uuid=ALT_ONE))

    with pytest.raises(ValidationError):
        save_player(PlayerForm(current_ign="AltOne", uuid=MAIN), player_id=second.id)
    assert db.session.get(Player, second.id).uuid == ALT_ONE


# ============================================================
# Alt accounts
# ============================================================
def test_link_alts_by_name_and_uuid(app):
    main, _ = save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne", ALT_TWO]))

    assert main.alt_accounts == [ALT_ONE, ALT_TWO]
    assert by_uuid(ALT_ONE).main_account == MAIN
    assert by_uuid(ALT_TWO).current_ign == "AltTwo"
    assert by_uuid(ALT_TWO).main_account == MAIN


def test_own_uuid_as_alt_is_rejected_without_writes(app):
    with pytest.raises(AltAccountError, match="own alt"):
        save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=[MAIN]))
    assert Player.query.count() == 0


def test_own_name_as_alt_is_rejected(app):
    with pytest.raises(AltAccountError, match="own alt"):
        save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["mainguy"]))


def test_alt_resolving_to_own_uuid_is_rejected(app):
    # an old name of the main resolves back to the main itself
    existing = Player(uuid=MAIN, current_ign="MainGuy")
    existing.past_igns = ["Former"]
    db.session.add(existing)
    db.session.commit()

    with pytest.raises(AltAccountError, match="own alt"):
        save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["Former"]), player_id=existing.id)
    assert by_uuid(MAIN).alt_accounts == []


def test_duplicate_alts_are_rejected(app):
    with pytest.raises(AltAccountError, match="Duplicate"):
        save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne", ALT_ONE]))
    assert Player.query.count() == 0


def test_alt_of_another_main_is_rejected(app):
    save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne"]))

    with pytest.raises(AltAccountError, match="another main"):
        save_player(PlayerForm(current_ign="AltTwo", uuid=ALT_TWO, alt_accounts=["AltOne"]))
    assert by_uuid(ALT_TWO) is None


def test_alt_cannot_have_alts(app):
    save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne"]))
    alt = by_uuid(ALT_ONE)

    with pytest.raises(AltAccountError, match="cannot have alt"):
        save_player(PlayerForm(current_ign="AltOne", uuid=ALT_ONE, alt_accounts=["AltTwo"]), player_id=alt.id)


def test_main_with_alts_cannot_become_an_alt(app):
    save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne"]))

    with pytest.raises(AltAccountError, match="of its own"):
        save_player(PlayerForm(current_ign="AltTwo", uuid=ALT_TWO, alt_accounts=["MainGuy"]))


def test_unknown_alt_name_fails_lookup_without_writes(app):
    with pytest.raises(IdentityLookupError):
        save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["Nobody"]))
    assert Player.query.count() == 0


def test_removing_an_alt_unlinks_it(app):
    main, _ = save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne", "AltTwo"]))
    save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltTwo"]), player_id=main.id)

    assert by_uuid(MAIN).alt_accounts == [ALT_TWO]
    assert by_uuid(ALT_ONE).main_account is None
    assert by_uuid(ALT_TWO).main_account == MAIN


def test_validate_alts_without_candidates(app):
    assert validate_alts(MAIN, "MainGuy", ["", "  "], []) == []


def test_delete_player_unlinks_everywhere(app):
    main, _ = save_player(PlayerForm(current_ign="MainGuy", uuid=MAIN, alt_accounts=["AltOne", "AltTwo"]))

    delete_player(by_uuid(ALT_ONE).id)
    assert by_uuid(MAIN).alt_accounts == [ALT_TWO]

    delete_player(main.id)
    assert by_uuid(ALT_TWO).main_account is None
    assert Player.query.count() == 1


def test_delete_unknown_player(app):
    with pytest.raises(ValidationError):
        delete_player("missing")
