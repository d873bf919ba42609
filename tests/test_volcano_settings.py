from __future__ import annotations

import json

import pytest

from curtain_volcano.errors import DegenerateAxisRange
from curtain_volcano.volcano_annotations import AnnotationStore
from curtain_volcano.volcano_settings import DEFAULT_COLOR_LIST, CurtainSettings, VolcanoAxis


def test_defaults_match_curtain() -> None:
    s = CurtainSettings()

    assert s.p_cutoff == 0.05
    assert s.log2fc_cutoff == 0.6
    assert s.version == 2.0
    assert s.scatter_plot_marker_size == 10
    assert s.plot_font_family == "Arial"
    assert s.volcano_plot_grid == {"x": True, "y": True}
    assert s.volcano_plot_yaxis_position == ("middle",)
    assert s.default_color_list == DEFAULT_COLOR_LIST
    assert s.volcano_axis == VolcanoAxis()
    assert s.volcano_axis.x_title == "Log2FC"
    assert s.volcano_axis.y_title == "-log10(p-value)"


def test_from_dict_reads_camel_case_keys() -> None:
    s = CurtainSettings.from_dict(
        {
            "pCutoff": "0.01",
            "log2FCCutoff": 1,
            "volcanoPlotTitle": "KO vs WT",
            "volcanoAxis": {"minX": "-2", "maxX": 2, "maxY": "-log10(0.001)", "x": "log2 ratio"},
            "volcanoPlotLegendX": 0.2,
            "conditionOrder": ["WT", "KO"],
        }
    )

    assert s.p_cutoff == 0.01
    assert s.log2fc_cutoff == 1.0
    assert s.volcano_plot_title == "KO vs WT"
    assert s.volcano_axis.min_x == -2.0 and s.volcano_axis.max_x == 2.0
    assert s.volcano_axis.max_y == pytest.approx(3.0)
    assert s.volcano_axis.min_y is None
    assert s.volcano_axis.x_title == "log2 ratio"
    assert s.volcano_plot_legend_x == 0.2
    assert s.condition_order == ("WT", "KO")


def test_axis_range_applies_defaults() -> None:
    rng = CurtainSettings.from_dict({"volcanoAxis": {"maxX": 4}}).axis_range()

    assert (rng.min_x, rng.max_x, rng.min_y, rng.max_y) == (-3.0, 4.0, 0.0, 5.0)


@pytest.mark.parametrize(
    "axis",
    [{"minX": 2, "maxX": 2}, {"minY": 6}, {"minX": 1, "maxX": -1}],
)
def test_degenerate_axis_fails_at_load(axis) -> None:
    with pytest.raises(DegenerateAxisRange):
        CurtainSettings.from_dict({"volcanoAxis": axis})


def test_bad_numbers_raise_value_error() -> None:
    with pytest.raises(ValueError):
        CurtainSettings.from_dict({"pCutoff": "not a number"})
    with pytest.raises(ValueError):
        CurtainSettings.from_dict({"colorMap": ["red"]})


def test_unknown_keys_survive_a_round_trip() -> None:
    raw = {"pCutoff": 0.05, "someFutureField": {"nested": [1, 2]}, "uniprotTrack": True}

    out = CurtainSettings.from_dict(raw).to_dict()

    assert out["someFutureField"] == {"nested": [1, 2]}
    assert out["uniprotTrack"] is True
    assert out["pCutoff"] == 0.05


def test_json_round_trip() -> None:
    s = CurtainSettings.from_dict(
        {
            "volcanoAxis": {"minX": -4, "maxX": 4, "dtickX": 1},
            "textAnnotation": {"a": {"title": "a", "data": {"x": 1, "y": 2, "text": "a"}}},
            "sampleMap": {"s1": {"condition": "WT"}},
        }
    )

    assert CurtainSettings.from_json(s.to_json()) == s
    assert json.loads(s.to_json())["volcanoAxis"]["dtickX"] == 1.0


def test_patch_builders_touch_only_the_named_field() -> None:
    s = CurtainSettings.from_dict({"pCutoff": 0.01, "description": "study"})
    store = AnnotationStore()
    store.add_annotation("P1", 1.0, 2.0)

    patched = s.with_annotation_store(store)

    assert patched.text_annotation == store.to_text_annotation()
    assert patched.replace(text_annotation={}) == s
    assert s.text_annotation == {}
    assert patched.p_cutoff == 0.01 and patched.description == "study"


def test_with_volcano_axis_and_text_annotation() -> None:
    s = CurtainSettings()
    source = {"a": {"title": "a", "data": {"x": 0, "y": 0}}}

    s2 = s.with_volcano_axis(VolcanoAxis(min_x=-1, max_x=1)).with_text_annotation(source)
    source["a"]["title"] = "mutated"

    assert s2.axis_range().max_x == 1.0
    assert s2.text_annotation["a"]["title"] == "a"


def test_replace_validates_the_new_axis() -> None:
    with pytest.raises(DegenerateAxisRange):
        CurtainSettings().with_volcano_axis(VolcanoAxis(min_y=5, max_y=5))


@pytest.mark.parametrize("raw, expected", [(True, True), (False, False), ("false", False), ("True", True), (0, False)])
def test_boolean_fields_parse_explicitly(raw, expected) -> None:
    assert CurtainSettings.from_dict({"uniprot": raw}).uniprot is expected


@pytest.mark.parametrize("raw", ["maybe", 2, None, [True]])
def test_boolean_fields_reject_other_values(raw) -> None:
    with pytest.raises(ValueError, match="uniprot"):
        CurtainSettings.from_dict({"uniprot": raw})
