from pathlib import Path

import pytest
import yaml
from pydantic import BaseModel, Field, create_model

from routedoc.config import Server
from routedoc.errors import DocumentWriteError
from routedoc.generator.document import (
    DocumentModel,
    EndpointRecord,
    RequestConfig,
    ResponseSpec,
    SecurityScheme,
)
from routedoc.generator.schemas import Schema
from routedoc.generator.writer import DOCUMENT_NAME, build_openapi, security_scheme, to_openapi30, write_document


class IdParam(BaseModel):
    id: int


class Paging(BaseModel):
    page: int = 1
    size: int = Field(20, description="Page size")


class Tag(BaseModel):
    label: str


class Pet(BaseModel):
    name: str
    nickname: str | None = None
    tag: Tag | None = None


# two schema modules, each with its own Address
HomeAddress = create_model("Address", street=(str, ...))
OfficeAddress = create_model("Address", zip_code=(str, ...))


class Resident(BaseModel):
    home: HomeAddress


class Employee(BaseModel):
    office: OfficeAddress


class Company(BaseModel):
    staff: list[Employee]


def _response(path: str, model: type[BaseModel]) -> EndpointRecord:
    return EndpointRecord(
        method="get",
        path=path,
        tag="t",
        responses={"200": ResponseSpec(description="OK", body=Schema(model))},
    )


def _response_schema(document: dict, path: str) -> dict:
    return document["paths"][path]["get"]["responses"]["200"]["content"]["application/json"]["schema"]


def _model(*records: EndpointRecord) -> DocumentModel:
    model = DocumentModel()
    for record in records:
        model.register(record)
    return model


def _pet_endpoint() -> EndpointRecord:
    return EndpointRecord(
        method="get",
        path="/pets/{id}",
        summary="getPet",
        tag="petsRouter",
        request=RequestConfig(path=Schema(IdParam), query=Schema(Paging)),
        responses={"200": ResponseSpec(description="OK", body=Schema(Pet))},
    )


class TestToOpenApi30:
    def test_optional_becomes_nullable(self):
        converted = to_openapi30({"anyOf": [{"type": "string"}, {"type": "null"}], "default": None})
        assert converted == {"type": "string", "default": None, "nullable": True}

    def test_multi_variant_union_keeps_any_of(self):
        converted = to_openapi30({"anyOf": [{"type": "string"}, {"type": "integer"}, {"type": "null"}]})
        assert converted == {"anyOf": [{"type": "string"}, {"type": "integer"}], "nullable": True}

    def test_nested_properties(self):
        converted = to_openapi30({"properties": {"a": {"anyOf": [{"$ref": "#/x"}, {"type": "null"}]}}})
        assert converted["properties"]["a"] == {"$ref": "#/x", "nullable": True}


class TestBuildOpenApi:
    def test_top_level_structure(self):
        document = build_openapi(
            _model(_pet_endpoint()),
            title="Pets",
            version="2.1.0",
            servers=[Server(url="https://pets.example.com", description="prod")],
            description="Pet store",
        )
        assert document["openapi"] == "3.0.0"
        assert document["info"] == {"title": "Pets", "version": "2.1.0", "description": "Pet store"}
        assert document["servers"] == [{"url": "https://pets.example.com", "description": "prod"}]
        assert list(document["paths"]) == ["/pets/{id}"]

    def test_operation_fields(self):
        operation = build_openapi(_model(_pet_endpoint()))["paths"]["/pets/{id}"]["get"]
        assert operation["summary"] == "getPet"
        assert operation["tags"] == ["petsRouter"]
        assert "requestBody" not in operation
        assert "security" not in operation

    def test_parameters_in_path_query_order(self):
        operation = build_openapi(_model(_pet_endpoint()))["paths"]["/pets/{id}"]["get"]
        params = [(p["name"], p["in"], p["required"]) for p in operation["parameters"]]
        assert params == [("id", "path", True), ("page", "query", False), ("size", "query", False)]
        assert operation["parameters"][2]["description"] == "Page size"

    def test_response_schema_and_components(self):
        document = build_openapi(_model(_pet_endpoint()))
        response = document["paths"]["/pets/{id}"]["get"]["responses"]["200"]
        schema = response["content"]["application/json"]["schema"]
        assert response["description"] == "OK"
        assert schema["title"] == "Pet"
        assert schema["properties"]["nickname"]["nullable"] is True
        assert schema["properties"]["tag"]["$ref"] == "#/components/schemas/Tag"
        assert document["components"]["schemas"]["Tag"]["required"] == ["label"]

    def test_request_body_with_content_type(self):
        record = EndpointRecord(
            method="post",
            path="/pets",
            tag="petsRouter",
            request=RequestConfig(body=Schema(Tag), content_type="multipart/form-data"),
        )
        operation = build_openapi(_model(record))["paths"]["/pets"]["post"]
        assert operation["requestBody"]["required"] is True
        assert list(operation["requestBody"]["content"]) == ["multipart/form-data"]

    def test_no_responses_gives_default(self):
        record = EndpointRecord(method="get", path="/health", tag="health")
        operation = build_openapi(_model(record))["paths"]["/health"]["get"]
        assert operation["responses"] == {"default": {"description": "Unspecified response"}}

    def test_methods_grouped_under_one_path(self):
        document = build_openapi(_model(
            EndpointRecord(method="get", path="/pets", tag="pets"),
            EndpointRecord(method="post", path="/pets", tag="pets"),
        ))
        assert list(document["paths"]["/pets"]) == ["get", "post"]

    def test_security(self):
        model = _model(EndpointRecord(method="get", path="/me", tag="me", security=["apiKey"]))
        model.register_security_scheme(SecurityScheme(name="apiKey", parameter="X-API-KEY"))
        document = build_openapi(model)
        assert document["paths"]["/me"]["get"]["security"] == [{"apiKey": []}]
        assert document["components"]["securitySchemes"]["apiKey"] == {
            "type": "apiKey",
            "in": "header",
            "name": "X-API-KEY",
        }

    def test_http_security_scheme(self):
        rendered = security_scheme(SecurityScheme(name="jwt", type="http", description="JWT"))
        assert rendered == {"type": "http", "scheme": "bearer", "description": "JWT"}


class TestNestedSchemaNames:
    def test_same_name_different_models_both_kept(self):
        document = build_openapi(_model(_response("/home", Resident), _response("/office", Employee)))
        schemas = document["components"]["schemas"]
        assert list(schemas["Address"]["properties"]) == ["street"]
        assert list(schemas["Address2"]["properties"]) == ["zip_code"]
        assert _response_schema(document, "/home")["properties"]["home"]["$ref"] == "#/components/schemas/Address"
        assert _response_schema(document, "/office")["properties"]["office"]["$ref"] == "#/components/schemas/Address2"

    def test_same_model_registered_once(self):
        document = build_openapi(_model(_response("/a", Resident), _response("/b", Resident)))
        assert list(document["components"]["schemas"]) == ["Address"]
        assert _response_schema(document, "/b")["properties"]["home"]["$ref"] == "#/components/schemas/Address"

    def test_refs_inside_hoisted_definitions_follow_rename(self):
        document = build_openapi(_model(_response("/home", Resident), _response("/company", Company)))
        schemas = document["components"]["schemas"]
        assert schemas["Employee"]["properties"]["office"]["$ref"] == "#/components/schemas/Address2"
        assert _response_schema(document, "/company")["properties"]["staff"]["items"]["$ref"] == (
            "#/components/schemas/Employee"
        )


class TestWriteDocument:
    def test_writes_yaml_into_new_directory(self, tmp_path):
        destination = tmp_path / "docs" / "api"
        target = write_document(_model(_pet_endpoint()), destination, title="Pets")
        assert target == destination / DOCUMENT_NAME
        loaded = yaml.safe_load(target.read_text(encoding="utf-8"))
        assert loaded["info"]["title"] == "Pets"
        assert "/pets/{id}" in loaded["paths"]

    def test_key_order_preserved(self, tmp_path):
        target = write_document(_model(_pet_endpoint()), tmp_path)
        first_lines = target.read_text(encoding="utf-8").splitlines()[:2]
        assert first_lines[0] == "openapi: 3.0.0"
        assert first_lines[1] == "info:"

    def test_unwritable_destination(self, tmp_path):
        blocker = tmp_path / "taken"
        blocker.write_text("not a directory")
        with pytest.raises(DocumentWriteError):
            write_document(_model(_pet_endpoint()), blocker / "docs")

    def test_path_parameter_mismatch_is_logged(self, tmp_path, caplog):
        record = EndpointRecord(method="get", path="/pets/{id}", tag="pets")
        write_document(_model(record), tmp_path)
        assert "GET /pets/{id}" in caplog.text
