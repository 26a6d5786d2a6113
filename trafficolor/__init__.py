"""Traffic-color E2E harness: drives the comparison map and inspects traffic tiles."""
