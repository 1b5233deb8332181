from inksnap.realtime.sse import SSEParser, format_comment, format_event, parse_events


def test_format_and_parse_event():
    text = format_event({"type": "INSERT", "record": {"id": 3}}, event="insert", event_id="7")
    assert text.endswith("\n\n")
    events = list(parse_events(text.split("\n")))
    assert len(events) == 1
    assert events[0].event == "insert"
    assert events[0].id == "7"
    assert events[0].json() == {"type": "INSERT", "record": {"id": 3}}


def test_comments_and_blank_lines_are_ignored():
    stream = format_comment("keepalive") + format_event({"ok": True}, event="ready")
    events = list(parse_events(stream.split("\n")))
    assert [e.event for e in events] == ["ready"]


def test_multiline_data_and_default_event_name():
    parser = SSEParser()
    assert parser.feed("data: first") is None
    assert parser.feed("data: second\r") is None
    event = parser.feed("")
    assert event.event == "message"
    assert event.data == "first\nsecond"
    assert parser.feed("") is None
