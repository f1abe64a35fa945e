"""Unit tests for validation.py - JSON Schema validation."""

from validation import schema_errors, validate_schema


class TestValidateSchema:
    """Tests for validate_schema function."""

    def test_valid_simple_schema(self):
        """Test validation of a simple valid schema."""
        schema = {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "count": {"type": "integer"},
            },
        }
        is_valid, error = validate_schema(schema)
        assert is_valid is True
        assert error is None

    def test_valid_schema_with_nullable_types(self):
        """Test validation of schema using type lists for nullable fields."""
        schema = {
            "type": "object",
            "properties": {"revision": {"type": ["string", "null"]}},
        }
        is_valid, error = validate_schema(schema)
        assert is_valid is True
        assert error is None

    def test_invalid_schema_bad_type(self):
        """Test that invalid type value is rejected."""
        is_valid, error = validate_schema({"type": "invalid_type"})
        assert is_valid is False
        assert "Invalid schema" in error

    def test_empty_schema_is_valid(self):
        """Test that empty schema is valid (matches anything)."""
        is_valid, error = validate_schema({})
        assert is_valid is True
        assert error is None


class TestSchemaErrors:
    """Tests for schema_errors function."""

    SCHEMA = {
        "type": "object",
        "required": ["compute"],
        "properties": {
            "compute": {
                "type": "object",
                "properties": {
                    "scaling": {
                        "type": "object",
                        "properties": {"minReplica": {"type": "integer"}},
                    }
                },
            },
            "items": {"type": "array", "items": {"type": "string"}},
        },
    }

    def test_valid_document(self):
        assert schema_errors({"compute": {}}, self.SCHEMA) == []

    def test_required_reported_at_root(self):
        errors = schema_errors({}, self.SCHEMA)
        assert errors == [("(root)", "'compute' is a required property")]

    def test_nested_path_is_dotted(self):
        document = {"compute": {"scaling": {"minReplica": "zero"}}}
        errors = schema_errors(document, self.SCHEMA)

        assert len(errors) == 1
        assert errors[0][0] == "compute.scaling.minReplica"

    def test_array_index_in_path(self):
        errors = schema_errors({"compute": {}, "items": ["a", 1]}, self.SCHEMA)
        assert errors[0][0] == "items.1"

    def test_errors_sorted_by_path(self):
        document = {"items": [1], "compute": {"scaling": {"minReplica": "x"}}}
        paths = [path for path, _ in schema_errors(document, self.SCHEMA)]
        assert paths == sorted(paths)
