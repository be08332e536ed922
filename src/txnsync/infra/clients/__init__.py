"""HTTP clients for the aggregator APIs."""
