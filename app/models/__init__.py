"""
Field Service Platform
Database models package.

The shared ``db`` object lives here; models are grouped by domain module:

    client     Client, Site
    case       Case
    intervention  Intervention, InterventionMedia, QuoteRequest
    audit      InterventionLog (append-only transition trail)
    device     Device, DeviceProposal
    quote      Quote
    review     ReviewItem
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
