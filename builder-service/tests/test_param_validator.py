from shopbuilder.models.schemas.component_catalog import component_registry
from shopbuilder.services.param_validator import validate_params, visible_properties


def warnings_for(kind_id, **overrides):
    kind = component_registry.get_kind(kind_id)
    return validate_params(kind, {**kind.defaults(), **overrides})


class TestValidateParams:
    def test_defaults_are_clean(self):
        for kind in component_registry.list_kinds():
            assert validate_params(kind, kind.defaults()) == []

    def test_number_bounds(self):
        warnings = warnings_for("product-grid", columns=5)
        assert [(w.level, w.param) for w in warnings] == [("warning", "columns")]
        assert "above maximum 3" in warnings[0].message

    def test_wrong_types(self):
        warnings = warnings_for("carousel", autoPlay="yes", itemsPerView="2")
        assert {w.param for w in warnings} == {"autoPlay", "itemsPerView"}

    def test_select_option(self):
        warnings = warnings_for("banner", height="999px")
        assert warnings[0].param == "height"

    def test_color_and_datetime(self):
        warnings = warnings_for("mobile-header", backgroundColor="blue")
        assert warnings[0].param == "backgroundColor"
        warnings = warnings_for("countdown", endDate="next week")
        assert warnings[0].param == "endDate"

    def test_unknown_and_missing_keys_are_info(self):
        kind = component_registry.get_kind("spacer")
        warnings = validate_params(kind, {"width": "10px"})
        assert sorted((w.level, w.param) for w in warnings) == [("info", "height"), ("info", "width")]


def test_visible_properties_follow_condition():
    carousel = component_registry.get_kind("carousel")
    names = [prop.name for prop in visible_properties(carousel, {"autoPlay": False})]
    assert "autoPlayInterval" not in names
    names = [prop.name for prop in visible_properties(carousel, {"autoPlay": True})]
    assert "autoPlayInterval" in names
