"""
Bundles package.

- models: Bundle definition, recommendation request and result records.
- catalog: The predefined starter, professional, enterprise and development bundles.
- resolver: Weighted bundle scoring and recommendation.
"""
