import pytest

from api_autodoc.builder.base import Documentation, ParameterDescriptor
from api_autodoc.version.changes import (
    ChangeAnalyzer,
    bump_version,
    coerce_documentation,
    detect_modifications,
    has_response_schema_changed,
)


def _doc(method="GET", path="/a", **kwargs) -> Documentation:
    return Documentation(method=method, path=path, **kwargs)


def _param(name, required=False, location="query") -> ParameterDescriptor:
    return ParameterDescriptor(name=name, location=location, required=required)


class TestAnalyze:
    def test_removed_endpoint_is_major(self):
        result = ChangeAnalyzer().analyze([{"method": "GET", "path": "/a", "parameters": []}], [])
        assert result.bump_type == "major"
        assert result.changes.deprecated_endpoints == ["GET /a"]
        assert len(result.changes.breaking_changes) == 1
        assert "/a" in result.changes.breaking_changes[0]
        assert result.changes.breaking_changes[0] == "Removed endpoint: GET /a"
        assert result.bump_reason == "Breaking changes detected: 1 breaking change(s)"

    def test_new_endpoint_is_minor(self):
        result = ChangeAnalyzer().analyze([], [{"method": "POST", "path": "/b"}])
        assert result.bump_type == "minor"
        assert result.changes.new_endpoints == ["POST /b"]
        assert result.bump_reason == "New features: 1 new endpoint(s)"

    def test_identical_is_patch(self):
        docs = [
            _doc(parameters=[_param("id", True, "path")], status_codes=[200], middleware=["auth"]),
            _doc("POST", "/b", response_schema={"properties": {"id": {}}}),
        ]
        result = ChangeAnalyzer().analyze(docs, [d.model_copy(deep=True) for d in docs])
        assert result.bump_type == "patch"
        assert result.bump_reason == "No functional changes detected"
        changes = result.changes
        assert changes.breaking_changes == []
        assert changes.new_endpoints == []
        assert changes.modified_endpoints == []
        assert changes.deprecated_endpoints == []
        assert changes.internal_changes == []

    def test_breaking_wins_over_new(self):
        result = ChangeAnalyzer().analyze([_doc(path="/old")], [_doc(path="/new")])
        assert result.bump_type == "major"
        assert result.changes.new_endpoints == ["GET /new"]

    def test_modified_is_patch(self):
        result = ChangeAnalyzer().analyze([_doc()], [_doc(parameters=[_param("page")])])
        assert result.bump_type == "patch"
        assert result.bump_reason == "Internal changes and improvements"
        assert result.changes.modified_endpoints == ["GET /a"]

    def test_middleware_change_is_internal(self):
        result = ChangeAnalyzer().analyze([_doc(middleware=["auth"])], [_doc(middleware=["auth", "cache"])])
        assert result.bump_type == "patch"
        assert result.changes.internal_changes == ["GET /a"]
        assert result.changes.modified_endpoints == []

    def test_modified_and_internal_together(self):
        result = ChangeAnalyzer().analyze(
            [_doc(middleware=["auth"])],
            [_doc(middleware=[], parameters=[_param("page")])],
        )
        assert result.changes.modified_endpoints == ["GET /a"]
        assert result.changes.internal_changes == ["GET /a"]

    def test_malformed_entries(self):
        previous = [
            {"method": "GET", "path": "/a", "parameters": "oops", "status_codes": [200]},
            {"path": "/no-method"},
            "garbage",
        ]
        current = [{"method": "GET", "path": "/a", "status_codes": [200]}]
        result = ChangeAnalyzer().analyze(previous, current)
        assert result.bump_type == "patch"
        assert result.changes.breaking_changes == []


class TestDetectModifications:
    def test_new_required_parameter(self):
        result = detect_modifications(_doc(), _doc(parameters=[_param("q", required=True)]))
        assert result.has_breaking_changes is True
        assert result.breaking_changes == ["GET /a: New required parameter 'q'"]
        assert result.has_changes is False

    def test_required_parameter_kept(self):
        params = [_param("q", required=True)]
        result = detect_modifications(_doc(parameters=params), _doc(parameters=params + [_param("page")]))
        assert result.breaking_changes == []
        assert result.has_changes is True

    def test_response_property_removed(self):
        old = _doc(response_schema={"properties": {"id": {}, "name": {}}})
        new = _doc(response_schema={"properties": {"id": {}}})
        assert detect_modifications(old, new).breaking_changes == ["GET /a: Response schema changed"]

    def test_removed_status_codes(self):
        result = detect_modifications(_doc(status_codes=[200, 404, 500]), _doc(status_codes=[200]))
        assert result.breaking_changes == ["GET /a: Removed status codes: 404, 500"]

    def test_marked_breaking(self):
        result = detect_modifications(_doc(), _doc(breaking_change=True))
        assert result.breaking_changes == ["GET /a: Marked as breaking change"]

        result = detect_modifications(_doc(), _doc(breaking_change=True, breaking_change_description="Auth required"))
        assert result.breaking_changes == ["GET /a: Auth required"]


class TestResponseSchemaChanged:
    def test_both_missing(self):
        assert has_response_schema_changed(None, None) is False

    def test_one_side_missing(self):
        assert has_response_schema_changed({"type": "object"}, None) is True
        assert has_response_schema_changed(None, {"type": "object"}) is True

    def test_empty_schema_is_not_missing(self):
        assert has_response_schema_changed({}, None) is True
        assert has_response_schema_changed(None, {}) is True
        assert has_response_schema_changed({}, {}) is False

    def test_added_property(self):
        assert has_response_schema_changed({"properties": {"a": {}}}, {"properties": {"a": {}, "b": {}}}) is False

    def test_no_properties(self):
        assert has_response_schema_changed({"type": "array"}, {"type": "object"}) is False


class TestCoerceDocumentation:
    def test_keeps_valid_fields(self):
        doc = coerce_documentation({"method": "get", "path": "/a", "parameters": 3, "status_codes": [404]})
        assert doc.key == "GET /a"
        assert doc.parameters == []
        assert doc.status_codes == [404]

    def test_rejects_unidentifiable(self):
        assert coerce_documentation({"method": "GET"}) is None
        assert coerce_documentation(None) is None


class TestBumpVersion:
    @pytest.mark.parametrize("bump_type,expected", [
        ("major", "2.0.0"),
        ("minor", "1.5.0"),
        ("patch", "1.4.10"),
    ])
    def test_bump(self, bump_type, expected):
        assert bump_version("1.4.9", bump_type) == expected

    def test_prefix_dropped(self):
        assert bump_version("v1.2.3", "patch") == "1.2.4"

    @pytest.mark.parametrize("version", ["", "1.2", "1.2.x", "version"])
    def test_invalid_version(self, version):
        with pytest.raises(ValueError):
            bump_version(version, "patch")

    def test_invalid_bump_type(self):
        with pytest.raises(ValueError):
            bump_version("1.0.0", "huge")
