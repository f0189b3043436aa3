"""Resource provenance inventory.

Lists resources in every region of an AWS account, pages through the
CloudTrail event history of each one to find who created it and when, and
aggregates the results into a report grouped by creator.
"""
