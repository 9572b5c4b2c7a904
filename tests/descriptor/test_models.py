import pytest

from selfservice.core.errors import ConfigurationError, DescriptorValidationError
from selfservice.descriptor.models import Action, CountPolicy, PagingMode, Query, QueryType, Resource, Services


def test_filter_query_needs_queryable_fields():
    with pytest.raises(DescriptorValidationError, match="queryableFields required for type = FILTER"):
        Query(type=QueryType.FILTER)


def test_id_query_needs_id():
    with pytest.raises(DescriptorValidationError, match="queryId required for type = ID"):
        Query(type=QueryType.ID)
    assert Query(type=QueryType.ID, query_id="byMail").query_id == "byMail"


def test_query_type_required():
    with pytest.raises(DescriptorValidationError, match="type is required"):
        Query()


def test_expression_query_needs_nothing_else():
    q = Query(type="EXPRESSION", paging_modes=["COOKIE"], count_policies=["EXACT"])
    assert q.type is QueryType.EXPRESSION
    assert q.paging_modes == (PagingMode.COOKIE,)
    assert q.count_policies == (CountPolicy.EXACT,)


def test_unknown_enum_values_rejected():
    with pytest.raises(DescriptorValidationError):
        Query(type="SQL")
    with pytest.raises(DescriptorValidationError):
        Query(type="EXPRESSION", paging_modes=["PAGE"])


def test_id_query_declaration_takes_handler_name():
    assert Query.from_declaration({"type": "ID"}, handler_name="findUser").query_id == "findUser"
    with pytest.raises(ConfigurationError, match="Query is missing ID"):
        Query.from_declaration({"type": "ID"})


def test_queries_sort_expression_filter_then_id_by_id():
    queries = [
        Query(type=QueryType.ID, query_id="b"),
        Query(type=QueryType.FILTER, queryable_fields=["name"]),
        Query(type=QueryType.ID, query_id="a"),
        Query(type=QueryType.EXPRESSION),
    ]
    ordered = sorted(queries)
    assert [(q.type, q.query_id) for q in ordered] == [
        (QueryType.EXPRESSION, ""),
        (QueryType.FILTER, ""),
        (QueryType.ID, "a"),
        (QueryType.ID, "b"),
    ]


@pytest.mark.parametrize(
    "name,message",
    [("", "name is required"), ("do it", "name contains whitespace"), (5, "name is required"), (None, "name is required")],
)
def test_action_name_checked(name, message):
    with pytest.raises(DescriptorValidationError, match=message):
        Action(name=name)


def test_action_declaration_falls_back_to_handler_name():
    assert Action.from_declaration({}, handler_name="submit").name == "submit"
    with pytest.raises(ConfigurationError, match="Action does not have a name"):
        Action.from_declaration({})


def test_resource_sorts_and_checks_actions():
    r = Resource(actions=(Action(name="b"), Action(name="a")))
    assert [a.name for a in r.actions] == ["a", "b"]
    with pytest.raises(DescriptorValidationError):
        Resource(actions=(Action(name="a"), Action(name="a")))


def test_services_names_unique():
    one = Resource(description="one")
    two = Resource(description="two")
    assert Services.from_pairs([("x", one), ("x", one)]).names == ("x",)
    with pytest.raises(DescriptorValidationError, match="name not unique"):
        Services.from_pairs([("x", one), ("x", two)])


@pytest.mark.parametrize("name", ["", "a b", None])
def test_service_name_checked(name):
    with pytest.raises(DescriptorValidationError, match="name required and may not contain whitespace"):
        Services.from_pairs([(name, Resource())])


@pytest.mark.parametrize("resources", [{1: Resource()}, {"a": Resource(), 2: Resource()}, {None: Resource()}])
def test_services_mapping_with_non_string_key_rejected(resources):
    with pytest.raises(DescriptorValidationError, match="name required"):
        Services(resources=resources)


def test_to_dict_omits_empty_parts():
    r = Resource(read=True, queries=(Query(type=QueryType.ID, query_id="q"),))
    assert Services(resources={"svc": r}).to_dict() == {
        "svc": {"read": {}, "queries": [{"type": "ID", "queryId": "q"}]}
    }
