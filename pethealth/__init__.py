"""Pet health analytics and nutrition computation engine.

This package contains the domain models and the pure computation services
(statistics, calories, health score, insights, goal progress), isolated from
storage and presentation so they are easy to test and reason about.
"""
