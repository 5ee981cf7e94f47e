"""Marketing post generation: external generator invocation and weekly schedule."""
