"""REST façades over the issue tracker and the knowledge base."""
