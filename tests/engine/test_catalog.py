"""Tests for script aggregation and sequencing."""

import pytest

from dbupgrade.engine import (
    CaseInsensitiveScriptNameComparer,
    OrdinalScriptNameComparer,
    Script,
    ScriptOptions,
    aggregate_scripts,
    sequence_scripts,
)
from dbupgrade.engine.catalog import contains_name, find_script
from dbupgrade.providers import StaticScriptProvider

from tests.helpers.fakes import FakeConnectionManager, scripts


class RecordingProvider:
    """Provider that remembers the connection manager it was given."""

    def __init__(self, catalog):
        self.catalog = catalog
        self.seen = []

    def get_scripts(self, connection_manager):
        self.seen.append(connection_manager)
        return self.catalog


class TestAggregateScripts:
    """Tests for aggregate_scripts."""

    def test_concatenates_in_provider_order(self):
        """Test scripts are returned provider by provider."""
        first = StaticScriptProvider(scripts("B.sql", "A.sql"))
        second = StaticScriptProvider(scripts("C.sql"))

        result = aggregate_scripts([first, second], FakeConnectionManager())

        assert [s.name for s in result] == ["B.sql", "A.sql", "C.sql"]

    def test_keeps_duplicates(self):
        """Test duplicate names across providers are not merged."""
        first = StaticScriptProvider(scripts("A.sql"))
        second = StaticScriptProvider([Script("A.sql", contents="other")])

        result = aggregate_scripts([first, second], FakeConnectionManager())

        assert [s.contents for s in result] == ["-- A.sql", "other"]

    def test_passes_connection_manager(self):
        """Test each provider receives the connection manager."""
        manager = FakeConnectionManager()
        provider = RecordingProvider([])

        aggregate_scripts([provider], manager)

        assert provider.seen == [manager]

    def test_no_providers(self):
        """Test an empty provider list yields no scripts."""
        assert aggregate_scripts([], FakeConnectionManager()) == []


class TestSequenceScripts:
    """Tests for sequence_scripts."""

    def test_orders_by_name(self):
        """Test scripts in one run group are ordered by name."""
        catalog = scripts("V3.sql", "V1.sql", "V2.sql")

        result = sequence_scripts(catalog, OrdinalScriptNameComparer())

        assert [s.name for s in result] == ["V1.sql", "V2.sql", "V3.sql"]

    def test_run_group_dominates_name(self):
        """Test a lower run group runs first whatever its name."""
        late = Script("A.sql", options=ScriptOptions(run_group_order=200))
        early = Script("Z.sql", options=ScriptOptions(run_group_order=1))
        default = Script("M.sql")

        result = sequence_scripts([late, default, early], OrdinalScriptNameComparer())

        assert [s.name for s in result] == ["Z.sql", "M.sql", "A.sql"]

    def test_is_deterministic_for_any_input_order(self):
        """Test permutations of the same catalog sequence identically."""
        comparer = OrdinalScriptNameComparer()
        catalog = scripts("b.sql", "a.sql", "c.sql", "B.sql")

        expected = [s.name for s in sequence_scripts(catalog, comparer)]

        assert [s.name for s in sequence_scripts(list(reversed(catalog)), comparer)] == expected
        assert expected == ["B.sql", "a.sql", "b.sql", "c.sql"]

    def test_equal_names_keep_emission_order(self):
        """Test scripts comparing equal keep the order they were discovered."""
        first = Script("V1.sql", contents="first")
        second = Script("v1.sql", contents="second")

        result = sequence_scripts([first, second], CaseInsensitiveScriptNameComparer())

        assert [s.contents for s in result] == ["first", "second"]

    def test_case_insensitive_ordering(self):
        """Test the comparer decides name order."""
        result = sequence_scripts(
            scripts("b.sql", "A.sql", "C.sql"), CaseInsensitiveScriptNameComparer()
        )

        assert [s.name for s in result] == ["A.sql", "b.sql", "C.sql"]

    def test_does_not_mutate_input(self):
        """Test the input list is left untouched."""
        catalog = scripts("V2.sql", "V1.sql")

        sequence_scripts(catalog, OrdinalScriptNameComparer())

        assert [s.name for s in catalog] == ["V2.sql", "V1.sql"]


class TestLookup:
    """Tests for find_script and contains_name."""

    @pytest.mark.parametrize(
        "comparer,name,found",
        [
            (OrdinalScriptNameComparer(), "V1.sql", True),
            (OrdinalScriptNameComparer(), "v1.sql", False),
            (CaseInsensitiveScriptNameComparer(), "v1.SQL", True),
        ],
    )
    def test_find_script(self, comparer, name, found):
        """Test lookup honors the comparer."""
        result = find_script(scripts("V1.sql", "V2.sql"), name, comparer)
        assert (result is not None) is found

    def test_find_script_returns_first_match(self):
        """Test the first of several matching scripts is returned."""
        catalog = [Script("V1.sql", contents="first"), Script("V1.sql", contents="second")]

        assert find_script(catalog, "V1.sql", OrdinalScriptNameComparer()).contents == "first"

    def test_contains_name(self):
        """Test membership under the comparer."""
        comparer = CaseInsensitiveScriptNameComparer()
        assert contains_name({"V1.SQL"}, "v1.sql", comparer)
        assert not contains_name({"V1.SQL"}, "v2.sql", comparer)
