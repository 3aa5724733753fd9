import json
import logging

import pytest

from codchi.nixlog import (
    TRACE,
    Activity,
    ActivityType,
    LogResult,
    Msg,
    OutputLine,
    Result,
    ResultType,
    Start,
    Stop,
    UnknownItem,
    Verbosity,
    parse_line,
    parse_log_item,
)


def nix(obj):
    return "@nix " + json.dumps(obj)


def test_plain_line_is_output():
    assert parse_line("building foo") == OutputLine("building foo")


def test_prefix_without_space_is_output():
    assert parse_line("@nix{}") == OutputLine("@nix{}")


def test_msg():
    item = parse_line(nix({"action": "msg", "level": 0, "msg": "boom"}))
    assert item == Msg(Verbosity.ERROR, "boom")


def test_msg_invalid_level_is_unknown():
    obj = {"action": "msg", "level": 42, "msg": "boom"}
    assert parse_line(nix(obj)) == UnknownItem(obj)


def test_stop():
    assert parse_line(nix({"action": "stop", "id": 7})) == Stop(7)


def test_unknown_action():
    obj = {"action": "dance", "id": 1}
    assert parse_line(nix(obj)) == UnknownItem(obj)


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        parse_line("@nix {not json")


def test_nan_rejected():
    with pytest.raises(ValueError):
        parse_line("@nix NaN")


def test_start_realise_without_fields():
    item = parse_line(nix({"action": "start", "id": 3, "level": 3, "type": 102, "text": "hi"}))
    assert item == Start(3, Verbosity.INFO, "hi", Activity(ActivityType.REALISE))


def test_start_copy_path():
    item = parse_line(
        nix(
            {
                "action": "start",
                "id": 1,
                "level": 4,
                "type": 100,
                "text": "copying",
                "fields": ["/nix/store/abc-x", "local", "remote"],
            }
        )
    )
    assert isinstance(item, Start)
    assert item.activity == Activity(
        ActivityType.COPY_PATH, path="/nix/store/abc-x", source="local", target="remote"
    )


def test_start_build():
    item = parse_line(
        nix(
            {
                "action": "start",
                "id": 9,
                "level": 3,
                "type": 105,
                "text": "building",
                "fields": ["/nix/store/abc-drv", "", 1, 1],
            }
        )
    )
    assert item.activity.type is ActivityType.BUILD
    assert item.activity.path == "/nix/store/abc-drv"
    assert item.activity.round == 1


def test_start_wrong_field_count_is_unknown():
    obj = {"action": "start", "id": 1, "level": 3, "type": 101, "text": "t", "fields": ["a", "b"]}
    assert parse_line(nix(obj)) == UnknownItem(obj)


def test_start_wrong_field_type_is_unknown():
    obj = {"action": "start", "id": 1, "level": 3, "type": 105, "text": "t",
           "fields": ["p", "m", "1", 1]}
    assert parse_log_item(obj) is None


def test_result_progress():
    item = parse_line(
        nix({"action": "result", "id": 5, "type": 105, "fields": [1, 2, 3, 4]})
    )
    assert item == Result(
        5, LogResult(ResultType.PROGRESS, done=1, expected=2, running=3, failed=4)
    )


def test_result_file_linked_order():
    item = parse_log_item({"action": "result", "id": 2, "type": 100, "fields": [10, 20]})
    assert item.result.blocks == 10
    assert item.result.size == 20


def test_result_set_expected():
    item = parse_log_item({"action": "result", "id": 2, "type": 106, "fields": [101, 500]})
    assert item.result.activity_type is ActivityType.FILE_TRANSFER
    assert item.result.expected == 500


def test_result_set_expected_bad_activity_type():
    assert parse_log_item({"action": "result", "id": 2, "type": 106, "fields": [55, 500]}) is None


def test_result_build_log_line():
    item = parse_log_item({"action": "result", "id": 4, "type": 101, "fields": ["make"]})
    assert item == Result(4, LogResult(ResultType.BUILD_LOG_LINE, line="make"))


def test_result_set_phase():
    item = parse_log_item({"action": "result", "id": 4, "type": 104, "fields": ["buildPhase"]})
    assert item.result.phase == "buildPhase"


def test_result_unknown_type():
    assert parse_log_item({"action": "result", "id": 4, "type": 999, "fields": []}) is None


def test_bool_not_accepted_as_int():
    assert parse_log_item({"action": "stop", "id": True}) is None


def test_out_of_range_id():
    assert parse_log_item({"action": "stop", "id": 2**64}) is None


def test_non_object():
    assert parse_log_item([1, 2]) is None


@pytest.mark.parametrize(
    "verbosity, level",
    [
        (Verbosity.ERROR, logging.ERROR),
        (Verbosity.WARN, logging.INFO),
        (Verbosity.NOTICE, logging.INFO),
        (Verbosity.INFO, logging.DEBUG),
        (Verbosity.TALKATIVE, TRACE),
        (Verbosity.VOMIT, TRACE),
    ],
)
def test_verbosity_levels(verbosity, level):
    assert verbosity.to_log_level() == level


def test_verbosity_levels_are_monotonic():
    items = [
        parse_log_item({"action": "msg", "level": code, "msg": "x"}) for code in range(8)
    ]
    assert items[0] == Msg(Verbosity.ERROR, "x")
    assert items[7] == Msg(Verbosity.VOMIT, "x")
    levels = [item.level.to_log_level() for item in items]
    assert levels == sorted(levels, reverse=True)
    assert levels[0] == logging.ERROR
    assert levels[-1] == TRACE


def test_enum_codes_fixed_by_format():
    assert ActivityType(112) is ActivityType.FETCH_TREE
    assert ResultType(108) is ResultType.FETCH_STATUS