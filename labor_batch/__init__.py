"""
labor_batch -- Submission batches of reporting events.

Groups validated events of one group type into batches, submits them
through an abstract transport and applies the authority's per-event
outcomes.

Architecture:
    labor_batch/ builds on labor_events/ and labor_kernel/.  Nothing in
    labor_kernel/ or labor_events/ imports from labor_batch; the event
    table only refers to ``submission_batches`` by foreign key name.

Invariants:
    - One OPEN/CLOSED/SENDING batch per company and group type
    - A batch only holds events of its group type
    - Submission is all-or-nothing; a failed submit returns to CLOSED
    - A failed poll never regresses a SENT batch
    - Batch mutations lock the batch row
"""
