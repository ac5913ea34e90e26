"""Calendar feed fetching, parsing and recurrence expansion."""
