"""specsync -- spec intelligence for OpenAPI/Swagger documents.

Normalizes Swagger 2.0 and OpenAPI 3.0/3.1 documents (JSON or YAML, local
or remote) into one canonical model, answers schema impact queries over a
dependency graph, diffs two spec versions with breaking-change
classification, and generates types and clients for several targets.

Typical usage::

    from specsync import tools

    tools.parse("openapi.yaml", format="endpoints", limit=20)
    tools.diff("v1.yaml", "v2.yaml", breaking_only=True)
    tools.generate("openapi.yaml", "python-httpx", out_dir="client/")

Modules:
    tools: The five tool operations (parse, deps, diff, status, generate).
    loader: Cache-aware, single-flight spec loading.
    graph: Schema dependency graph and impact queries.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
