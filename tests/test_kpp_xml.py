"""Tests for the markup folding layer."""

import xml.etree.ElementTree as ET

import pytest

from kpp_xml import as_list, coerce_value, parse_markup


class TestCoerceValue:
    def test_integer(self):
        assert coerce_value("50") == 50
        assert isinstance(coerce_value("50"), int)

    def test_float_keeps_float_type(self):
        val = coerce_value("1.0")
        assert val == 1.0
        assert isinstance(val, float)

    def test_trims(self):
        assert coerce_value("  0.8 ") == 0.8

    def test_curve_string_stays_string(self):
        assert coerce_value("0,0;1,1;") == "0,0;1,1;"

    def test_words_stay_strings(self):
        assert coerce_value("auto_brush") == "auto_brush"
        assert coerce_value("nan") == "nan"


class TestParseMarkup:
    def test_attributes_become_fields(self):
        tree = parse_markup('<Brush type="auto" spacing="0.1"/>')
        assert tree == {'Brush': {'type': 'auto', 'spacing': 0.1}}

    def test_single_child_is_dict(self):
        tree = parse_markup('<Preset name="Ink"><param name="a" value="1"/></Preset>')
        assert tree['Preset']['param'] == {'name': 'a', 'value': 1}

    def test_repeated_children_become_list(self):
        tree = parse_markup('<Preset><param name="a"/><param name="b"/><param name="c"/></Preset>')
        params = tree['Preset']['param']
        assert isinstance(params, list)
        assert [p['name'] for p in params] == ['a', 'b', 'c']

    def test_text_only_element_folds_to_scalar(self):
        assert parse_markup('<a><b>12</b></a>') == {'a': {'b': 12}}

    def test_text_next_to_attributes(self):
        assert parse_markup('<a x="1">hi</a>') == {'a': {'x': 1, 'text': 'hi'}}

    def test_cdata_lands_in_text(self):
        tree = parse_markup('<Preset><param name="x"><![CDATA[hello]]></param><param name="y"/></Preset>')
        assert tree['Preset']['param'][0] == {'name': 'x', 'text': 'hello'}

    def test_empty_element_is_empty_dict(self):
        assert parse_markup('<Brush/>') == {'Brush': {}}

    def test_doctype_is_accepted(self):
        tree = parse_markup('<!DOCTYPE params>\n<params id="pressure" curve="0,0;1,1;"/>')
        assert tree == {'params': {'id': 'pressure', 'curve': '0,0;1,1;'}}

    def test_leading_whitespace_before_declaration(self):
        tree = parse_markup('\n  <?xml version="1.0" encoding="UTF-8"?><Preset name="x"/>')
        assert tree == {'Preset': {'name': 'x'}}

    def test_malformed_raises(self):
        with pytest.raises(ET.ParseError):
            parse_markup('<Brush type="auto"')


class TestStopNodes:
    def test_inline_markup_kept_as_text(self):
        tree = parse_markup(
            '<Preset><param name="bd"><Brush type="auto"><MaskGenerator diameter="5"/></Brush></param></Preset>',
            stop_nodes=('param',),
        )
        param = tree['Preset']['param']
        assert param['name'] == 'bd'
        assert isinstance(param['text'], str)
        # the kept text is markup on its own
        assert parse_markup(param['text']) == {'Brush': {'type': 'auto', 'MaskGenerator': {'diameter': 5}}}

    def test_cdata_markup_kept_verbatim(self):
        inner = '<Brush type="auto" spacing="0.1"/>'
        tree = parse_markup(f'<Preset><param name="bd"><![CDATA[{inner}]]></param></Preset>', stop_nodes=('param',))
        assert tree['Preset']['param']['text'] == inner

    def test_plain_text_is_still_coerced(self):
        tree = parse_markup('<Preset><param name="o">0.5</param></Preset>', stop_nodes=('param',))
        assert tree['Preset']['param']['text'] == 0.5

    def test_raw_attributes_are_not_coerced(self):
        tree = parse_markup(
            '<Preset name="1.50" version="2"><param name="007" value="007"/></Preset>',
            stop_nodes=('param',),
            raw_attributes=('name',),
        )
        assert tree == {'Preset': {'name': '1.50', 'version': 2, 'param': {'name': '007', 'value': 7}}}

    def test_empty_stop_node_has_no_text(self):
        tree = parse_markup('<Preset><param name="o"/></Preset>', stop_nodes=('param',))
        assert tree['Preset']['param'] == {'name': 'o'}


class TestAsList:
    def test_none(self):
        assert as_list(None) == []

    def test_single(self):
        assert as_list({'a': 1}) == [{'a': 1}]

    def test_list_unchanged(self):
        items = [1, 2]
        assert as_list(items) is items
