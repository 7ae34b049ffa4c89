"""
Table names and fixed identifiers for the CRM schema.

See the Supabase migrations for the authoritative definitions.
"""

SHARING_RULES_TABLE = "sharing_rules"
MANUAL_SHARES_TABLE = "manual_shares"
OBJECT_DEFINITIONS_TABLE = "object_definitions"
USERS_TABLE = "users"
ROLES_TABLE = "roles"

# Standard CRM objects live in fixed tables; custom objects declare their
# table in object_definitions.table_name.
STANDARD_OBJECT_TABLES = {
    'Contact': 'crm_contacts',
    'Account': 'crm_accounts',
    'Lead': 'crm_leads',
    'Opportunity': 'crm_opportunities',
    'Activity': 'crm_activities',
}

# Postgres error code for unique_violation
UNIQUE_VIOLATION_CODE = '23505'
