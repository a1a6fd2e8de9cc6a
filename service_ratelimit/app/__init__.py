"""
Rate-limit policy resolver for the 254Carbon Access Layer.

Given an ordered set of rules, each a partial pattern over request
attributes plus a quota, the resolver picks the single rule that governs a
request. It provides:

- app.rules: Pattern compilation, rule store and resolution engine.
- app.loader: JSON / INI / YAML rule documents into rule stores.
- app.main: Command-line validation and resolution.

Guidelines:
- Rules are registered once, then the store is frozen and shared read-only.
- Declare specific rules before general ones; end with an empty-pattern
  catch-all.
- Quota accounting (counting requests per actor) is done by the caller.
"""
