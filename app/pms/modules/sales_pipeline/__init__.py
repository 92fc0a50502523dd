"""
Sales pipeline module.

Pre-sale view over Project records (LEAD through WON/LOST). Pipeline ids are
project ids; the old /dashboard/sales-pipeline/<id> pages redirect to the project page.
"""
