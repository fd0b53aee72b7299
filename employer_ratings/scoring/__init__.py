"""
Multi-source weighted rating engine.

Pure stages, each a function of its inputs plus a ``RatingPolicy``:

    1. normalizer   raw assessments -> component scores (or no-data markers)
    2. confidence   count + recency -> high / medium / low / very_low
    3. weighting    component scores -> one aggregate (closed set of algorithms)
    4. discrepancy  project vs expert judgment -> level, review flag, strategy
    5. gates        post-aggregation caps that only ever downgrade

``pipeline.RatingEngine`` runs them in order; persistence lives in
``employer_ratings.services``.
"""
