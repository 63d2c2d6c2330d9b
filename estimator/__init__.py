"""
Proposal estimator: formula evaluation and cost aggregation for trade proposals.
"""
