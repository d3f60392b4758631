"""
Permission catalog.

A closed, versioned vocabulary of boolean flags. Roles store a mapping of
flag name to bool; everything that reads a role goes through
``normalize_permissions`` so the rest of the code only ever sees the fixed
shape keyed by ``Permission`` members.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

CATALOG_VERSION = 2


class Permission(str, Enum):
    CAN_VIEW_ORGANIZATIONS = "canViewOrganizations"
    CAN_VIEW_OWN_ORGANIZATION = "canViewOwnOrganization"
    CAN_CREATE_ORGANIZATIONS = "canCreateOrganizations"
    CAN_UPDATE_ORGANIZATIONS = "canUpdateOrganizations"
    CAN_DELETE_ORGANIZATIONS = "canDeleteOrganizations"
    CAN_VIEW_ROLES = "canViewRoles"
    CAN_MANAGE_ROLES = "canManageRoles"
    CAN_VIEW_USERS = "canViewUsers"
    CAN_VIEW_MANAGE_OWN_USER = "canViewManageOwnUser"
    CAN_UPDATE_USER = "canUpdateUser"
    CAN_DELETE_USER = "canDeleteUser"
    CAN_CREATE_USER = "canCreateUser"
    CAN_VIEW_LEADS = "canViewLeads"
    CAN_MANAGE_LEADS = "canManageLeads"
    CAN_VIEW_TEAMS = "canViewTeams"
    CAN_MANAGE_TEAMS = "canManageTeams"
    CAN_VIEW_DEPARTMENTS = "canViewDepartments"
    CAN_MANAGE_DEPARTMENTS = "canManageDepartments"
    CAN_VIEW_DEALS = "canViewDeals"
    CAN_MANAGE_DEALS = "canManageDeals"
    CAN_VIEW_STATUS = "canViewStatus"
    CAN_MANAGE_STATUS = "canManageStatus"
    CAN_VIEW_SETTINGS = "canViewSettings"
    CAN_MANAGE_SETTINGS = "canManageSettings"
    CAN_VIEW_GOALS = "canViewGoals"
    CAN_MANAGE_GOALS = "canManageGoals"
    CAN_VIEW_CALLS = "canViewCalls"
    CAN_MANAGE_CALLS = "canManageCalls"
    CAN_VIEW_MAIL_BOX = "canViewMailBox"
    CAN_MANAGE_MAIL_BOX = "canManageMailBox"
    CAN_VIEW_TASKS = "canViewTasks"
    CAN_MANAGE_TASKS = "canManageTasks"
    CAN_VIEW_NOTES = "canViewNotes"
    CAN_MANAGE_NOTES = "canManageNotes"
    CAN_VIEW_ARTICLES = "canViewArticles"
    CAN_MANAGE_ARTICLES = "canManageArticles"
    CAN_VIEW_WIKI = "canViewWiki"
    CAN_MANAGE_WIKI = "canManageWiki"
    CAN_VIEW_EMAIL_TEMPLATES = "canViewEmailTemplates"
    CAN_MANAGE_EMAIL_TEMPLATES = "canManageEmailTemplates"
    CAN_VIEW_EMAIL_FOLDERS = "canViewEmailFolders"
    CAN_MANAGE_EMAIL_FOLDERS = "canManageEmailFolders"
    CAN_VIEW_EMAIL_CAMPAIGNS = "canViewEmailCampaigns"
    CAN_MANAGE_EMAIL_CAMPAIGNS = "canManageEmailCampaigns"
    CAN_VIEW_SCORE_QUESTIONS = "canViewScoreQuestions"
    CAN_MANAGE_SCORE_QUESTIONS = "canManageScoreQuestions"
    CAN_VIEW_FILES = "canViewFiles"
    CAN_MANAGE_FILES = "canManageFiles"
    CAN_VIEW_KEY_TOKENS = "canViewKeyTokens"
    CAN_MANAGE_KEY_TOKENS = "canManageKeyTokens"
    CAN_VIEW_PROMPTS = "canViewPrompts"
    CAN_MANAGE_PROMPTS = "canManagePrompts"
    CAN_VIEW_OVERVIEWS = "canViewOverviews"
    CAN_MANAGE_OVERVIEWS = "canManageOverviews"
    CAN_VIEW_PROMPT_TEMPLATES = "canViewPromptTemplates"
    CAN_MANAGE_PROMPT_TEMPLATES = "canManagePromptTemplates"
    CAN_VIEW_FORMS = "canViewForms"
    CAN_MANAGE_FORMS = "canManageForms"
    CAN_VIEW_ACTIVITIES = "canViewActivities"
    CAN_MANAGE_ACTIVITIES = "canManageActivities"
    CAN_VIEW_MAILS = "canViewMails"
    CAN_MANAGE_MAILS = "canManageMails"
    CAN_VIEW_TAGS = "canViewTags"
    CAN_MANAGE_TAGS = "canManageTags"
    CAN_VIEW_LEM_CAMPAIGNS = "canViewLemCampaigns"
    CAN_MANAGE_LEM_CAMPAIGNS = "canManageLemCampaigns"
    CAN_VIEW_PIPELINES = "canViewPipelines"
    CAN_MANAGE_PIPELINES = "canManagePipelines"
    CAN_VIEW_PLANS = "canViewPlans"
    CAN_MANAGE_PLANS = "canManagePlans"
    CAN_VIEW_SUBSCRIPTIONS = "canViewSubscriptions"
    CAN_MANAGE_SUBSCRIPTIONS = "canManageSubscriptions"
    CAN_MANAGE_INVOICE = "canManageInvoice"
    CAN_MANAGE_LINKS = "canManageLinks"
    CAN_VIEW_LINKS = "canViewLinks"
    CAN_VIEW_COMPANIES = "canViewCompanies"
    CAN_MANAGE_COMPANIES = "canManageCompanies"
    CAN_VIEW_SNIPPETS = "canViewSnippets"
    CAN_MANAGE_SNIPPETS = "canManageSnippets"
    CAN_VIEW_CAMPAIGNS = "canViewCampaigns"
    CAN_MANAGE_CAMPAIGNS = "canManageCampaigns"
    CAN_MANAGE_HELP = "canManageHelp"
    CAN_VIEW_HELP = "canViewHelp"
    CAN_VIEW_RECURRING_EMAILS = "canViewRecurringEmails"
    CAN_MANAGE_RECURRING_EMAILS = "canManageRecurringEmails"
    CAN_VIEW_CONTACTS = "canViewContacts"
    CAN_MANAGE_CONTACTS = "canManageContacts"
    CAN_VIEW_SEGMENTS = "canViewSegments"
    CAN_MANAGE_SEGMENTS = "canManageSegments"


# Flags that are granted unless a role says otherwise.
_DEFAULT_TRUE = frozenset(
    {
        Permission.CAN_VIEW_MANAGE_OWN_USER,
        Permission.CAN_VIEW_SETTINGS,
        Permission.CAN_VIEW_EMAIL_FOLDERS,
        Permission.CAN_MANAGE_EMAIL_FOLDERS,
        Permission.CAN_VIEW_KEY_TOKENS,
        Permission.CAN_VIEW_OVERVIEWS,
        Permission.CAN_VIEW_TAGS,
    }
)

# Breadth flags reserved for SuperAdmin / Admin.
ORGANIZATION_PERMISSIONS = frozenset(
    {
        Permission.CAN_VIEW_ORGANIZATIONS,
        Permission.CAN_CREATE_ORGANIZATIONS,
        Permission.CAN_UPDATE_ORGANIZATIONS,
        Permission.CAN_DELETE_ORGANIZATIONS,
    }
)


def catalog_defaults() -> dict[Permission, bool]:
    return {perm: perm in _DEFAULT_TRUE for perm in Permission}


def parse_permission(name: str | Permission) -> Permission | None:
    if isinstance(name, Permission):
        return name
    try:
        return Permission(str(name))
    except ValueError:
        return None


def normalize_permissions(raw: Mapping[str, Any] | None) -> tuple[dict[Permission, bool], frozenset[str]]:
    """
    Return ``(fixed_shape_map, unknown_names)``.

    Missing flags take their catalog default. Values are coerced with
    ``bool``. Names outside the catalog are not dropped silently: they are
    returned so callers that validate input (custom role creation) can
    reject them.
    """

    result = catalog_defaults()
    unknown: set[str] = set()
    for name, value in (raw or {}).items():
        perm = parse_permission(name)
        if perm is None:
            unknown.add(str(name))
            continue
        result[perm] = bool(value)
    return result, frozenset(unknown)


def granted(permissions: Mapping[Permission, bool]) -> frozenset[Permission]:
    return frozenset(perm for perm, value in permissions.items() if value)


def to_storage(permissions: Mapping[Permission, bool]) -> dict[str, bool]:
    """Serialize for the roles.permissions JSON column."""
    return {perm.value: bool(value) for perm, value in permissions.items()}
