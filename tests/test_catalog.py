import uuid
from datetime import datetime, timedelta

import pytest

from tourneydata.catalog import (
    AdminConfig,
    BestOfNFormat,
    Console,
    DepositRecord,
    Featured,
    Notification,
    count_deposit_record_pages,
    create_challenge_sub_type,
    create_format,
    create_game_sub_type,
    create_game_type,
    create_notification,
    delete_game_sub_type,
    get_all_badge_urls,
    get_badge_url,
    get_challenge_types,
    get_consoles_for_game_type,
    get_featured,
    get_format,
    get_game_sub_types,
    get_game_types,
    get_specific_game_sub_type,
    get_specific_game_type,
    get_user_deposit_records,
    insert_featured,
    list_featured,
    list_formats,
    read_admin_config,
    read_notifications,
    store_badge_url,
)
from tourneydata.db import Database, RecordNotFoundError


@pytest.fixture
def db():
    database = Database("sqlite3", ":memory:")
    database.connect()
    return database


def test_read_admin_config_empty_raises(db):
    with pytest.raises(RecordNotFoundError):
        read_admin_config(db)


def test_read_admin_config_returns_first_row(db):
    with db.session() as session:
        session.add(AdminConfig(rpc_node_url="http://node-a.example.com", api_rate=10))
        session.add(AdminConfig(rpc_node_url="http://node-b.example.com", api_rate=20))
    config = read_admin_config(db)
    assert config.rpc_node_url == "http://node-a.example.com"
    assert config.api_rate == 10


def test_badge_store_and_fetch(db):
    store_badge_url(db, "https://img.example.com/gold.png", "gold")
    assert get_badge_url(db, "gold").badge_url == "https://img.example.com/gold.png"


def test_badge_store_replaces_existing(db):
    store_badge_url(db, "https://img.example.com/old.png", "gold")
    store_badge_url(db, "https://img.example.com/new.png", "gold")
    badges = get_all_badge_urls(db)
    assert [b.badge_id for b in badges] == ["gold"]
    assert badges[0].badge_url == "https://img.example.com/new.png"


def test_badge_missing_raises(db):
    with pytest.raises(RecordNotFoundError):
        get_badge_url(db, "silver")


def test_notifications_filtered_by_username(db):
    first = create_notification(db, Notification(username="alice", message="hello"))
    create_notification(db, Notification(username="alice", message="again"))
    create_notification(db, Notification(username="bob", message="other"))
    notes = read_notifications(db, "alice")
    assert sorted(n.message for n in notes) == ["again", "hello"]
    assert first.id in {n.id for n in notes}


def test_featured_insert_get_and_list(db):
    insert_featured(db, Featured(object_title="weekly", object_id="t-1", object_type="tournament"))
    insert_featured(db, Featured(object_title="daily", object_id="c-1", object_type="challenge"))
    fetched = get_featured(db, "weekly")
    assert fetched.object_id == "t-1"
    assert isinstance(fetched.updated_at, datetime)
    assert [f.object_title for f in list_featured(db, "challenge")] == ["daily"]
    assert {f.object_title for f in list_featured(db, "")} == {"weekly", "daily"}


def test_featured_insert_replaces(db):
    insert_featured(db, Featured(object_title="weekly", object_id="t-1", object_type="tournament"))
    insert_featured(db, Featured(object_title="weekly", object_id="t-2", object_type="tournament"))
    assert get_featured(db, "weekly").object_id == "t-2"
    assert len(list_featured(db, "")) == 1


def test_featured_missing_raises(db):
    with pytest.raises(RecordNotFoundError):
        get_featured(db, "monthly")


def test_consoles_for_game_type(db):
    with db.session() as session:
        session.add_all(
            [
                Console(game_type="APEX_LEGENDS", console_name="PSN"),
                Console(game_type="APEX_LEGENDS", console_name="XBOX"),
                Console(game_type="CODMWBR", console_name="BATTLENET"),
            ]
        )
    assert sorted(get_consoles_for_game_type(db, "APEX_LEGENDS")) == ["PSN", "XBOX"]
    assert get_consoles_for_game_type(db, "CHESS") == []


def test_challenge_sub_types(db):
    create_challenge_sub_type(db, "KILLS", "SOLO")
    create_challenge_sub_type(db, "KILLS", "SOLO")
    create_challenge_sub_type(db, "WINS", "TEAM")
    pairs = {(c.challenge_type, c.subtype) for c in get_challenge_types(db)}
    assert pairs == {("KILLS", "SOLO"), ("WINS", "TEAM")}
    assert len(get_challenge_types(db)) == len(pairs)


def test_game_sub_types_create_and_query(db):
    create_game_sub_type(db, "CODMWBR", "SOLO", 1)
    create_game_sub_type(db, "CODMWBR", "DUO", 2)
    create_game_sub_type(db, "APEX_LEGENDS", "TRIO", 3)
    assert {g.game_sub_type for g in get_game_sub_types(db, "CODMWBR")} == {"SOLO", "DUO"}
    specific = get_specific_game_sub_type(db, "CODMWBR", "DUO")
    assert [g.team_size for g in specific] == [2]


def test_game_sub_type_recreate_updates_team_size(db):
    create_game_sub_type(db, "CODMWBR", "DUO", 2)
    create_game_sub_type(db, "CODMWBR", "DUO", 4)
    assert [g.team_size for g in get_specific_game_sub_type(db, "CODMWBR", "DUO")] == [4]


def test_delete_game_sub_type(db):
    create_game_sub_type(db, "CODMWBR", "SOLO", 1)
    create_game_sub_type(db, "CODMWBR", "DUO", 2)
    delete_game_sub_type(db, "CODMWBR", "SOLO")
    assert get_specific_game_sub_type(db, "CODMWBR", "SOLO") == []
    assert [g.game_sub_type for g in get_game_sub_types(db, "CODMWBR")] == ["DUO"]


def test_delete_missing_game_sub_type_raises(db):
    with pytest.raises(RecordNotFoundError):
        delete_game_sub_type(db, "CODMWBR", "SQUAD")


def test_game_types(db):
    fps = create_game_type(db, "FPS")
    sports = create_game_type(db, "SPORTS")
    assert isinstance(fps.game_type_id, uuid.UUID)
    assert fps.game_type_id != sports.game_type_id
    found = get_specific_game_type(db, "FPS")
    assert [g.game_type_id for g in found] == [fps.game_type_id]
    assert {g.game_type for g in get_game_types(db)} == {"FPS", "SPORTS"}


def test_formats(db):
    create_format(db, "SINGLE_ELIMINATION", "Single Elimination", 3)
    create_format(db, "ROUND_ROBIN", "Round Robin", 1)
    assert [f.label for f in get_format(db, "SINGLE_ELIMINATION")] == ["Single Elimination"]
    assert {f.format_name for f in list_formats(db)} == {"SINGLE_ELIMINATION", "ROUND_ROBIN"}


def test_format_recreate_updates(db):
    create_format(db, "SINGLE_ELIMINATION", "Single Elimination", 3)
    create_format(db, "SINGLE_ELIMINATION", "Knockout", 5)
    formats = get_format(db, "SINGLE_ELIMINATION")
    assert [(f.label, f.max_winners) for f in formats] == [("Knockout", 5)]


def _add_deposits(db, address, hashes):
    start = datetime(2021, 1, 1)
    with db.session() as session:
        for offset, tx_hash in enumerate(hashes):
            session.add(
                DepositRecord(
                    tx_hash=tx_hash,
                    poa_address=address,
                    mint_date=start + timedelta(days=offset),
                )
            )


def test_deposit_records_paged_newest_first(db):
    hashes = [f"0xhash{n}" for n in range(5)]
    _add_deposits(db, "0xaddress", hashes)
    _add_deposits(db, "0xelsewhere", ["0xforeign"])
    pages = [get_user_deposit_records(db, "0xaddress", page, 2) for page in (1, 2, 3)]
    first = pages[0]
    assert [r.mint_date for r in first] == sorted((r.mint_date for r in first), reverse=True)
    assert first[0].tx_hash == hashes[-1]
    collected = [r.tx_hash for page in pages for r in page]
    assert sorted(collected) == sorted(hashes)


def test_deposit_records_page_zero_has_no_offset(db):
    _add_deposits(db, "0xaddress", [f"0xhash{n}" for n in range(4)])
    page_zero = get_user_deposit_records(db, "0xaddress", 0, 2)
    page_one = get_user_deposit_records(db, "0xaddress", 1, 2)
    assert [r.tx_hash for r in page_zero] == [r.tx_hash for r in page_one]


def test_count_deposit_record_pages(db):
    hashes = [f"0xhash{n}" for n in range(5)]
    _add_deposits(db, "0xaddress", hashes)
    per_page = 2
    pages = count_deposit_record_pages(db, "0xaddress", per_page)
    assert (pages - 1) * per_page < len(hashes) <= pages * per_page
    assert count_deposit_record_pages(db, "0xnobody", per_page) == 0


def test_count_deposit_record_pages_rejects_zero_per_page(db):
    with pytest.raises(ValueError):
        count_deposit_record_pages(db, "0xaddress", 0)


def test_best_of_n_format_round_trip():
    fmt = BestOfNFormat(all_rounds="1", semi_finals="3", finals="5")
    data = fmt.to_dict()
    assert set(data) == {"allRounds", "semiFinals", "finals"}
    assert BestOfNFormat.from_dict(data) == fmt