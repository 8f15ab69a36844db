"""Amendment engine: staging, version replay and amendment deltas.

Import: VersionReplayer folds the upstream versions of a report into the
snapshots to store locally.
Export: compute_delta reduces the new and previous versions of a report to
the amendment-tagged records to submit.
"""
