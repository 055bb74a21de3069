"""Structured output extraction from model responses."""

import pytest

from daer.core.errors import StructuredOutputError
from daer.core.json_extract import (
    extract_json,
    find_json_span,
    parse_consistency,
    parse_planning,
    strip_fences,
)
from daer.models.results import ConsistencyReport


def test_strip_fences_returns_fenced_body():
    text = '好的，结果如下：\n```json\n{"passed": true}\n```\n以上。'
    assert strip_fences(text) == '{"passed": true}'


def test_strip_fences_handles_unterminated_fence():
    assert strip_fences('```json\n{"a": 1}') == '{"a": 1}'


def test_find_json_span_ignores_brackets_inside_strings():
    text = 'prefix {"note": "a } in a string", "list": [1, 2]} suffix'
    start, end = find_json_span(text)
    assert text[start:end] == '{"note": "a } in a string", "list": [1, 2]}'


def test_find_json_span_honours_escaped_quotes():
    text = '{"quote": "he said \\"}\\" loudly"} trailing'
    start, end = find_json_span(text)
    assert text[start:end].endswith('loudly"}')


def test_find_json_span_reports_unclosed_value():
    start, end = find_json_span('answer: {"volumes": [')
    assert start == 8
    assert end is None


def test_extract_json_with_commentary_around_value():
    text = '这是审核结果：{"passed": false, "issues": ["时间线矛盾"]} 请参考。'
    assert extract_json(text) == {"passed": False, "issues": ["时间线矛盾"]}


def test_extract_json_accepts_top_level_array():
    assert extract_json("[1, 2, 3]") == [1, 2, 3]


def test_extract_json_repairs_trailing_comma():
    assert extract_json('{"passed": true, "issues": [],}') == {"passed": True, "issues": []}


def test_extract_json_rejects_text_without_json():
    with pytest.raises(StructuredOutputError) as exc:
        extract_json("抱歉，我无法完成这个请求。")
    assert exc.value.raw == "抱歉，我无法完成这个请求。"


def test_extract_json_rejects_empty_output():
    with pytest.raises(StructuredOutputError):
        extract_json("   ")


def test_parse_planning_reads_volumes_and_chapters():
    text = """```json
{"volumes": [
  {"title": "第一卷", "chapters": [{"title": "启程", "summary": "离开家乡"}]},
  {"title": "第二卷", "chapters": [{"title": "归来"}]}
]}
```"""
    structure = parse_planning(text)
    assert [v.title for v in structure.volumes] == ["第一卷", "第二卷"]
    assert structure.volumes[0].chapters[0].summary == "离开家乡"
    assert structure.volumes[1].chapters[0].summary == ""


def test_parse_planning_wraps_bare_volume_list():
    structure = parse_planning('[{"title": "卷一", "chapters": null}]')
    assert structure.volumes[0].title == "卷一"
    assert structure.volumes[0].chapters == []


def test_parse_planning_rejects_empty_volume_list():
    with pytest.raises(StructuredOutputError):
        parse_planning('{"volumes": []}')


def test_parse_consistency_defaults_missing_lists():
    report = parse_consistency('{"passed": true}')
    assert report.passed is True
    assert report.issues == []
    assert report.suggestions == []


def test_parse_consistency_requires_passed_flag():
    with pytest.raises(StructuredOutputError):
        parse_consistency('{"issues": ["x"]}')


def test_extract_json_skips_bracketed_prose_before_payload():
    text = '审核结论[详见下文]：{"passed": true, "issues": []}'
    assert extract_json(text) == {"passed": True, "issues": []}


def test_parse_consistency_prefers_object_over_earlier_array():
    report = parse_consistency('参见第[1]条：{"passed": true, "issues": []}')
    assert report.passed is True


def test_extract_json_finds_span_after_offset():
    text = '[注] {"a": 1}'
    start, end = find_json_span(text, offset=4)
    assert text[start:end] == '{"a": 1}'


def test_malformed_object_is_repaired_whole_not_split():
    value = extract_json('结果：{"volumes": [{"title": "卷一", "chapters": []},],}')
    assert value == {"volumes": [{"title": "卷一", "chapters": []}]}


def test_lenient_validation_leaves_input_untouched():
    data = {"passed": True, "issues": None, "suggestions": None}
    report = ConsistencyReport.model_validate(data)
    assert report.issues == []
    assert report.suggestions == []
    assert data == {"passed": True, "issues": None, "suggestions": None}
