import uuid

import pytest

from application.dto import ItemRequestDTO, PageQueryDTO
from application.validation import ItemValidator
from domain.common.exceptions import ValidationError
from shared.codes import ErrorCode, ErrorKind


@pytest.fixture
def validator() -> ItemValidator:
    return ItemValidator()


class TestValidateCreate:
    def test_accepts_allowed_characters(self, validator):
        validator.validate_create(ItemRequestDTO(name="Widget 2.0_beta-1"))

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_rejects_empty_name(self, validator, name):
        with pytest.raises(ValidationError) as ei:
            validator.validate_create(ItemRequestDTO(name=name))
        assert ei.value.errors == {"Name": ["Name is required and cannot be empty."]}

    def test_rejects_long_name(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_create(ItemRequestDTO(name="a" * 101))
        assert ei.value.errors["Name"] == ["Name cannot exceed 100 characters."]

    def test_accepts_exactly_100_characters(self, validator):
        validator.validate_create(ItemRequestDTO(name="a" * 100))

    @pytest.mark.parametrize("name", ["bad/name", "semi;colon", "tab\tname", "trailing\n", "emoji☃"])
    def test_rejects_invalid_characters(self, validator, name):
        with pytest.raises(ValidationError) as ei:
            validator.validate_create(ItemRequestDTO(name=name))
        assert "invalid characters" in ei.value.errors["Name"][0]

    def test_aggregates_name_and_id_errors(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_create(ItemRequestDTO(name="", id=str(uuid.uuid4())))

        err = ei.value
        assert set(err.errors) == {"Name", "Id"}
        assert err.errors["Id"] == ["ID should not be provided for create requests."]
        assert err.kind is ErrorKind.VALIDATION
        assert err.error_code == ErrorCode.VALIDATION_ERROR.value
        assert err.message == "One or more validation errors occurred."

    def test_missing_request(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_create(None)
        assert ei.value.errors == {"request": ["Request cannot be null."]}


class TestValidateUpdate:
    def test_valid(self, validator):
        validator.validate_update(ItemRequestDTO(id=str(uuid.uuid4()), name="Renamed"))

    def test_requires_id(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_update(ItemRequestDTO(name="Renamed"))
        assert ei.value.errors == {"Id": ["ID is required for update requests."]}

    def test_aggregates_bad_id_and_bad_name(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_update(ItemRequestDTO(id="not-a-guid", name="x" * 101))
        assert ei.value.errors == {
            "Id": ["ID must be a valid GUID format."],
            "Name": ["Name cannot exceed 100 characters."],
        }


class TestValidatePagination:
    def test_valid(self, validator):
        validator.validate_pagination(PageQueryDTO(start_page=1, page_size=1000))

    def test_aggregates_both_fields(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_pagination(PageQueryDTO(start_page=0, page_size=0))
        assert ei.value.errors == {
            "StartPage": ["StartPage must be greater than 0."],
            "PageSize": ["PageSize must be greater than 0."],
        }

    def test_page_size_ceiling(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_pagination(PageQueryDTO(start_page=1, page_size=1001))
        assert ei.value.errors == {"PageSize": ["PageSize cannot exceed 1000."]}

    def test_page_size_between_ceilings_passes(self, validator):
        # Accepted here, clamped later by the service
        validator.validate_pagination(PageQueryDTO(start_page=1, page_size=500))

    def test_explicit_zero_ceiling_is_kept(self):
        validator = ItemValidator(max_page_size=0)
        assert validator.max_page_size == 0
        with pytest.raises(ValidationError) as ei:
            validator.validate_pagination(PageQueryDTO(start_page=1, page_size=1))
        assert ei.value.errors == {"PageSize": ["PageSize cannot exceed 0."]}


class TestValidateAndParseId:
    def test_returns_uuid(self, validator):
        value = uuid.uuid4()
        assert validator.validate_and_parse_id(str(value)) == value

    def test_trims_whitespace(self, validator):
        value = uuid.uuid4()
        assert validator.validate_and_parse_id(f"  {value}  ") == value

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty(self, validator, raw):
        with pytest.raises(ValidationError) as ei:
            validator.validate_and_parse_id(raw)
        assert ei.value.errors == {"Id": ["Id is required and cannot be empty."]}
        assert ei.value.message == "Validation failed for field 'Id': Id is required and cannot be empty."

    def test_unparsable_uses_field_name(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_and_parse_id("nope", "ItemId")
        assert ei.value.errors == {"ItemId": ["ItemId must be a valid GUID format."]}

    def test_nil_uuid(self, validator):
        with pytest.raises(ValidationError) as ei:
            validator.validate_and_parse_id(str(uuid.UUID(int=0)))
        assert ei.value.errors == {"Id": ["Id cannot be an empty GUID."]}
