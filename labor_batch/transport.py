"""
Outbound transport contract (``labor_batch.transport``).

The government gateway is reached only through this protocol.  Concrete
implementations (SOAP/REST clients, signing) live outside this package;
tests inject a scripted fake.

Both calls raise ``TransportError`` on network or remote failure.  A
business rejection is NOT a transport error: it comes back as data in
``PollResult``.
"""

from typing import Protocol, runtime_checkable

from labor_batch.domain.types import PollResult, SubmissionEnvelope, SubmitReceipt


@runtime_checkable
class SubmissionTransport(Protocol):
    def submit(self, envelope: SubmissionEnvelope) -> SubmitReceipt:
        """Submit one batch; return the protocol number assigned to it."""
        ...

    def poll(self, protocol_number: str) -> PollResult:
        """Return the outcomes known so far for a submitted batch."""
        ...
