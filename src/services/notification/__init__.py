"""Notification subsystem - close protection enquiry delivery.

Public API:
- SmtpEnquiryDispatcher: Sends enquiries by email
- render_enquiry: HTML body of an enquiry email
"""

from .smtp_dispatcher import SmtpEnquiryDispatcher, render_enquiry

__all__ = ["SmtpEnquiryDispatcher", "render_enquiry"]
