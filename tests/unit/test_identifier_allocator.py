"""
Unit tests for IdentifierAllocator.
"""
from kvblog.identifier_allocator import COUNTER_KEY, IdentifierAllocator, format_identifier


class TestIdentifierAllocator:
    """Test suite for sequential identifier allocation."""

    def test_format_identifier_pads_to_six_digits(self):
        assert format_identifier(1) == "000001"
        assert format_identifier(123456) == "123456"
        assert format_identifier(1234567) == "1234567"

    def test_first_allocation(self, accessor):
        """Test that an empty store starts at 000001."""
        allocator = IdentifierAllocator(accessor)
        assert allocator.current() == 0
        assert allocator.allocate() == "000001"
        assert accessor.get_json(COUNTER_KEY) == 1

    def test_allocations_increase(self, accessor):
        """Test that successive allocations are strictly increasing."""
        allocator = IdentifierAllocator(accessor)
        ids = [allocator.allocate() for _ in range(3)]
        assert ids == ["000001", "000002", "000003"]

    def test_quoted_counter_is_parsed(self, accessor, local_store):
        """Test that a counter stored as a JSON string is accepted."""
        local_store.put(COUNTER_KEY, '"7"')
        allocator = IdentifierAllocator(accessor)
        assert allocator.current() == 7
        assert allocator.allocate() == "000008"

    def test_unparseable_counter_restarts(self, accessor, local_store):
        """Test that garbage in the counter key is treated as 0."""
        local_store.put(COUNTER_KEY, "not-a-number")
        assert IdentifierAllocator(accessor).allocate() == "000001"

    def test_observe_advances_counter(self, accessor):
        """Test that observing a larger id moves the counter past it."""
        allocator = IdentifierAllocator(accessor)
        allocator.observe("000010")
        assert allocator.allocate() == "000011"

    def test_observe_never_decreases(self, accessor):
        """Test that observing a smaller or non-numeric id changes nothing."""
        allocator = IdentifierAllocator(accessor)
        allocator.observe("000005")
        allocator.observe("000002")
        allocator.observe("legacy-post")
        assert allocator.current() == 5
