"""
Services
- checkout: provider-agnostic checkout intent builder
- coupons: discount math and single-use consumption
- reconciliation: notification and capture reconcilers
- postback: legacy processor entitlement override
- delivery / drive: download gate and Google Drive client
- admin: users, roles and purchase listing
"""
