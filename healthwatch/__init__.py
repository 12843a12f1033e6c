"""Embedded observability engine: metrics sampling, dependency health, alerts, live events.

Domain models live in `healthwatch.domain`, the components in
`healthwatch.services`.
"""
