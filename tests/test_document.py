import pytest
from pydantic import BaseModel

from routedoc.generator.document import (
    DocumentModel,
    EndpointRecord,
    RequestConfig,
    ResponseSpec,
    SecurityScheme,
)
from routedoc.generator.schemas import Schema


class Query(BaseModel):
    page: int = 1


class Filter(BaseModel):
    name: str | None = None


class TestRequestConfig:
    def test_defaults(self):
        request = RequestConfig()
        assert request.is_empty()
        assert request.content_type == "application/json"

    def test_assign_merges_same_slot(self):
        request = RequestConfig()
        request.assign("query", Schema(Query))
        request.assign("query", Schema(Filter))
        assert request.query.fields == ["page", "name"]
        assert not request.is_empty()

    def test_unknown_slot(self):
        with pytest.raises(ValueError):
            RequestConfig().assign("cookie", Schema(Query))


class TestEndpointRecord:
    def test_key_is_lowercase_method_and_path(self):
        record = EndpointRecord(method="GET", path="/users/{id}", tag="users")
        assert record.key == ("get", "/users/{id}")
        assert record.responses == {}
        assert record.security == []

    def test_records_do_not_share_defaults(self):
        first = EndpointRecord(method="get", path="/a", tag="t")
        second = EndpointRecord(method="get", path="/b", tag="t")
        first.request.assign("query", Schema(Query))
        first.responses["200"] = ResponseSpec(description="OK")
        assert second.request.is_empty()
        assert second.responses == {}


class TestDocumentModel:
    def test_same_method_and_path_replaces(self):
        model = DocumentModel()
        model.register(EndpointRecord(method="get", path="/users/{id}", summary="first", tag="users"))
        model.register(EndpointRecord(method="get", path="/users/{id}", summary="second", tag="users"))
        assert len(model.records) == 1
        assert model.records[0].summary == "second"

    def test_paths_group_methods(self):
        model = DocumentModel()
        model.register(EndpointRecord(method="get", path="/users", tag="users"))
        model.register(EndpointRecord(method="get", path="/admin", tag="admin"))
        model.register(EndpointRecord(method="post", path="/users", tag="users"))
        grouped = model.paths()
        assert list(grouped) == ["/users", "/admin"]
        assert [r.method for r in grouped["/users"]] == ["get", "post"]

    def test_security_schemes_by_name(self):
        model = DocumentModel()
        model.register_security_scheme(SecurityScheme(name="apiKey"))
        model.register_security_scheme(SecurityScheme(name="apiKey", parameter="X-TOKEN"))
        assert list(model.security_schemes) == ["apiKey"]
        assert model.security_schemes["apiKey"].parameter == "X-TOKEN"

    def test_fresh_models_are_independent(self):
        first = DocumentModel()
        first.register(EndpointRecord(method="get", path="/a", tag="t"))
        assert DocumentModel().records == []
