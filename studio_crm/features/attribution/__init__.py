"""
Marketing attribution feature package.

Connection snapshots from the chat integration are reduced here into the
friend totals, source breakdowns and growth series of the marketing
dashboard, alongside the manually recorded follower counts.
"""
