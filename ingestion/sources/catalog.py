"""
The registries this service synchronizes, described as data.

Priorities and default cron expressions reflect how often each registry
publishes new opportunities: open-call portals are polled several times a
day, award archives daily or less.
"""

from typing import Dict, List

from core.exceptions import ConfigurationError
from ingestion.sources.config import (
    SourceConfig, AuthConfig, PaginationConfig, PartitionConfig, DateWindowConfig,
    AmountRule, CategoryRule, KeywordRule, EligibilityRule, LocationRule,
    ContactRule, InclusionRule,
)
from models.base import CategoryType, LocationType


GRANTS_GOV = SourceConfig(
    name="grants_gov",
    display_name="Grants.gov",
    endpoint="https://api.grants.gov/v1/api/search2",
    method="POST",
    base_params={"oppStatuses": "forecasted|posted", "sortBy": "openDate|desc", "keyword": ""},
    pagination=PaginationConfig(style="offset", page_size=100, offset_param="startRecordNum", limit_param="rows"),
    records_path="data.oppHits",
    native_id_paths=["id", "number"],
    source_url_template="https://www.grants.gov/search-results-detail/{id}",
    field_map={
        "title": ["title"],
        "status": ["oppStatus"],
        "funding_organization_name": ["agency", "agencyName"],
        "funding_organization_code": ["agencyCode"],
        "posted_date": ["openDate"],
        "application_deadline": ["closeDate"],
        "last_updated_date": ["modifiedDate", "lastUpdatedDate"],
        "grant_type": ["docType"],
        "activity_code": ["cfdaList.0", "alnist.0"],
        "description": ["description", "synopsis"],
    },
    constants={"status": "posted", "grant_type": "Grant", "currency": "USD"},
    category_rules=[
        CategoryRule(path="fundingCategories", category_type=CategoryType.THEME),
        CategoryRule(path="cfdaList", category_type=CategoryType.CFDA, name_template="CFDA {code}"),
    ],
    eligibility_rule=EligibilityRule(path="eligibilities", value_key="description"),
    contact_rules=[
        ContactRule(contact_type="general", email_path="officeContactEmail", phone_path="officeContactPhone"),
    ],
    default_cron="0 */4 * * *",
    priority=10,
)

EU_FUNDING_PORTAL = SourceConfig(
    name="eu_funding_portal",
    display_name="EU Funding & Tenders Portal",
    endpoint="https://api.tech.ec.europa.eu/search-api/prod/rest/search",
    auth=AuthConfig(scheme="api_key", param="apiKey", location="query",
                    settings_key="EU_FUNDING_API_KEY", value="SEDIA"),
    base_params={"text": "*", "type": "FUNDING", "status": "OPEN", "sortBy": "relevance"},
    pagination=PaginationConfig(style="page", page_size=50, page_param="pageNumber", limit_param="pageSize"),
    records_path="results",
    native_id_paths=["identifier", "metadata.identifier.0", "reference", "id"],
    source_url_template=(
        "https://ec.europa.eu/info/funding-tenders/opportunities/portal/screen/"
        "opportunities/topic-details/{metadata.identifier.0}"
    ),
    field_map={
        "title": ["title", "metadata.title.0", "summary"],
        "status": ["status", "metadata.status.0"],
        "funding_organization_code": ["programmeName", "metadata.frameworkProgramme.0"],
        "source_url": ["url"],
        "posted_date": ["openingDate", "metadata.startDate.0"],
        "application_deadline": ["deadlineDate", "submissionDeadline", "metadata.deadlineDate.0"],
        "grant_type": ["type"],
        "funding_instrument": ["fundingScheme", "metadata.typesOfAction.0"],
        "description": ["description", "topicDescription", "metadata.descriptionByte.0"],
        "abstract": ["callAbstract"],
    },
    constants={
        "funding_organization_name": "European Commission",
        "currency": "EUR",
        "grant_type": "Research and Innovation",
    },
    status_map={
        "open": "open",
        "forthcoming": "forecasted",
        "closed": "closed",
        "31094501": "forecasted",
        "31094502": "open",
        "31094503": "closed",
    },
    amount_rules=[
        AmountRule(kind="field", paths=["metadata.cftEstimatedTotalProcedureValue.0"],
                   targets=["funding_amount_max", "total_funding_available"]),
        AmountRule(kind="json_budget", paths=["metadata.budgetOverview.0"],
                   targets=["funding_amount_max", "total_funding_available"]),
        AmountRule(kind="text_money", paths=["metadata.additionalInfos.0"],
                   targets=["funding_amount_max", "total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="destinationGroup", category_type=CategoryType.THEME),
        CategoryRule(path="programmeName", category_type=CategoryType.TOPIC),
    ],
    keyword_rule=KeywordRule(paths=["keywords", "metadata.keywords"]),
    location_rules=[
        LocationRule(location_type=LocationType.ELIGIBLE, list_path="countriesEligible"),
    ],
    default_cron="0 2,14 * * *",
    priority=9,
)

NIH_REPORTER = SourceConfig(
    name="nih_reporter",
    display_name="NIH RePORTER",
    endpoint="https://api.reporter.nih.gov/v2/projects/search",
    method="POST",
    base_params={
        "criteria": {"exclude_subprojects": True},
        "sort_field": "project_start_date",
        "sort_order": "desc",
    },
    pagination=PaginationConfig(style="offset", page_size=500, offset_param="offset", limit_param="limit"),
    partitions=PartitionConfig(years_back=2, param="criteria.fiscal_years", as_int_list=True),
    records_path="results",
    native_id_paths=["project_num", "appl_id", "application_id"],
    source_url_template="https://reporter.nih.gov/project-details/{project_num}",
    field_map={
        "title": ["project_title"],
        "funding_organization_name": ["agency_ic_admin.name", "ic_name"],
        "funding_organization_code": ["agency_ic_admin.abbreviation", "agency_ic_admin.code", "administering_ic"],
        "posted_date": ["award_notice_date"],
        "start_date": ["project_start_date"],
        "end_date": ["project_end_date"],
        "grant_type": ["activity_code"],
        "activity_code": ["activity_code"],
        "description": ["abstract_text"],
        "abstract": ["phr_text"],
        "purpose": ["project_title"],
    },
    constants={"status": "awarded", "currency": "USD", "grant_type": "Research Grant"},
    amount_rules=[
        AmountRule(kind="field", paths=["award_amount", "total_cost"],
                   targets=["funding_amount_min", "funding_amount_max"]),
    ],
    category_rules=[
        CategoryRule(path="activity_code", category_type=CategoryType.RESEARCH_AREA, name_template="{code} Grant"),
        CategoryRule(path="study_section", category_type=CategoryType.TOPIC, name_key="sra_name", code_key="sra_code"),
    ],
    keyword_rule=KeywordRule(paths=["pref_terms", "terms"]),
    eligibility_rule=EligibilityRule(static=["Research Institutions"]),
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country_path="organization.org_country", country="US",
                     region_path="organization.org_state", city_path="organization.org_city"),
    ],
    contact_rules=[
        ContactRule(contact_type="program", list_path="program_officers", name_paths=["full_name"],
                    email_path="email"),
        ContactRule(contact_type="technical", list_path="principal_investigators", name_paths=["full_name"],
                    email_path="email", title="Principal Investigator"),
    ],
    default_cron="0 3 * * *",
    priority=6,
    requests_per_window=3600,
)

NSF_AWARDS = SourceConfig(
    name="nsf_awards",
    display_name="NSF Award Search",
    endpoint="https://www.research.gov/awardapi-service/v1/awards.json",
    base_params={
        "printFields": (
            "id,title,startDate,expDate,awardeeName,piFirstName,piLastName,piEmail,"
            "fundProgramName,awardeeCity,awardeeStateCode,estimatedTotalAmt,"
            "fundsObligatedAmt,abstractText"
        ),
    },
    pagination=PaginationConfig(style="offset", page_size=25, offset_param="offset", limit_param="rpp"),
    records_path="response.award",
    native_id_paths=["id"],
    source_url_template="https://www.nsf.gov/awardsearch/showAward?AWD_ID={id}",
    field_map={
        "title": ["title"],
        "start_date": ["startDate"],
        "end_date": ["expDate"],
        "funding_instrument": ["fundProgramName"],
        "description": ["abstractText"],
    },
    constants={
        "status": "awarded",
        "funding_organization_name": "National Science Foundation",
        "funding_organization_code": "NSF",
        "currency": "USD",
        "grant_type": "Research Grant",
    },
    amount_rules=[
        AmountRule(kind="field", paths=["fundsObligatedAmt"], targets=["funding_amount_min"]),
        AmountRule(kind="field", paths=["estimatedTotalAmt"],
                   targets=["funding_amount_max", "total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="fundProgramName", category_type=CategoryType.RESEARCH_AREA),
    ],
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country="US",
                     region_path="awardeeStateCode", city_path="awardeeCity"),
    ],
    contact_rules=[
        ContactRule(contact_type="technical", name_template="{piFirstName} {piLastName}",
                    name_paths=["piLastName"], email_path="piEmail", title="Principal Investigator"),
    ],
    default_cron="0 4 * * *",
    priority=6,
)

CANADIAN_OPEN_GOV = SourceConfig(
    name="canadian_open_gov",
    display_name="Open Government Canada - Grants and Contributions",
    endpoint="https://open.canada.ca/data/api/3/action/datastore_search_sql",
    pagination=PaginationConfig(
        style="sql",
        page_size=500,
        sql_template=(
            'SELECT * FROM "432516d7-b1db-42f7-b7e1-cbb0e6b71d2e" '
            "ORDER BY agreement_start_date DESC LIMIT {limit} OFFSET {offset}"
        ),
    ),
    records_path="result.records",
    native_id_paths=["ref_number"],
    native_id_templates=["{owner_org}_{agreement_number}"],
    field_map={
        "title": ["program_name_en", "program_name_fr", "agreement_title_en"],
        "funding_organization_name": ["owner_org_title", "fowner_org_name", "owner_org"],
        "funding_organization_code": ["owner_org"],
        "posted_date": ["agreement_start_date"],
        "start_date": ["agreement_start_date"],
        "end_date": ["agreement_end_date"],
        "grant_type": ["agreement_type"],
        "funding_instrument": ["agreement_type"],
        "description": ["description_en", "description_fr", "expected_results_en"],
        "purpose": ["purpose_en", "purpose_fr"],
    },
    constants={"title": "Canadian Government Grant", "status": "awarded", "currency": "CAD"},
    status_from_dates=True,
    amount_rules=[
        AmountRule(kind="field", paths=["agreement_value"],
                   targets=["funding_amount_min", "funding_amount_max", "total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="program_name_en", category_type=CategoryType.TOPIC),
        CategoryRule(path="naics_identifier", category_type=CategoryType.SECTOR, name_template="NAICS {code}"),
    ],
    eligibility_rule=EligibilityRule(path="recipient_type"),
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country_path="recipient_country", country="CA",
                     region_path="recipient_province", city_path="recipient_city"),
    ],
    default_cron="0 5 * * *",
    priority=5,
)

UKRI_GATEWAY = SourceConfig(
    name="ukri_gateway",
    display_name="UKRI Gateway to Research",
    endpoint="https://gtr.ukri.org/api/projects",
    headers={"Accept": "application/vnd.rcuk.gtr.json-v7"},
    base_params={"q": "*"},
    pagination=PaginationConfig(style="page", page_size=100, page_param="p", limit_param="s"),
    records_path="project",
    native_id_paths=["id"],
    source_url_template="https://gtr.ukri.org/projects?ref={grantReference}",
    field_map={
        "title": ["title"],
        "status": ["status"],
        "funding_organization_name": ["fund.funder.name"],
        "funding_organization_code": ["fund.funder.id"],
        "source_url": ["href"],
        "start_date": ["fund.start"],
        "end_date": ["fund.end"],
        "funding_instrument": ["grantCategory"],
        "description": ["abstractText"],
        "purpose": ["potentialImpactText"],
    },
    constants={
        "funding_organization_name": "UK Research and Innovation",
        "funding_organization_code": "UKRI",
        "currency": "GBP",
        "grant_type": "Research Grant",
        "funding_instrument": "Research Grant",
    },
    amount_rules=[
        AmountRule(kind="field", paths=["fund.valuePounds.amount", "fund.valuePounds"],
                   targets=["funding_amount_min", "funding_amount_max", "total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="researchTopics", category_type=CategoryType.RESEARCH_AREA, name_key="text", code_key="id"),
        CategoryRule(path="researchSubjects", category_type=CategoryType.SUBJECT, name_key="text", code_key="id"),
        CategoryRule(path="healthCategories", category_type=CategoryType.THEME, name_key="text", code_key="id"),
    ],
    keyword_rule=KeywordRule(paths=["keywords"]),
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country="GB",
                     city_path="leadResearchOrganisation.address.city"),
    ],
    default_cron="0 6 * * *",
    priority=5,
)

WORLD_BANK = SourceConfig(
    name="world_bank",
    display_name="World Bank Projects",
    endpoint="https://search.worldbank.org/api/v2/projects",
    base_params={"format": "json", "apilang": "en", "status": "Active"},
    pagination=PaginationConfig(style="offset", page_size=100, offset_param="os", limit_param="rows"),
    records_path="projects",
    native_id_paths=["id"],
    source_url_template="https://projects.worldbank.org/en/projects-operations/project-detail/{id}",
    field_map={
        "title": ["project_name"],
        "status": ["status"],
        "source_url": ["url"],
        "posted_date": ["boardapprovaldate"],
        "start_date": ["boardapprovaldate"],
        "end_date": ["closingdate"],
        "funding_instrument": ["lendinginstr"],
        "description": ["project_abstract.cdata", "project_abstract", "pdo"],
        "purpose": ["pdo"],
    },
    constants={
        "funding_organization_name": "World Bank",
        "funding_organization_code": "WB",
        "currency": "USD",
        "grant_type": "Development Financing",
    },
    status_map={"pipeline": "forecasted", "dropped": "archived"},
    amount_rules=[
        AmountRule(kind="field", paths=["totalcommamt"], targets=["funding_amount_min"]),
        AmountRule(kind="field", paths=["totalamt"], targets=["funding_amount_max", "total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="sector", category_type=CategoryType.SECTOR, name_key="Name"),
        CategoryRule(path="theme_exact", category_type=CategoryType.THEME),
        CategoryRule(path="goal", category_type=CategoryType.SDG),
    ],
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country_path="countrycode"),
    ],
    default_cron="0 0 */2 * *",
    priority=3,
)

FEDERAL_REGISTER = SourceConfig(
    name="federal_register",
    display_name="Federal Register",
    endpoint="https://www.federalregister.gov/api/v1/documents.json",
    base_params={
        "conditions[term]": 'grant OR "funding opportunity" OR "cooperative agreement"',
        "conditions[type][]": "NOTICE",
        "order": "newest",
    },
    pagination=PaginationConfig(style="page", page_size=100, page_param="page", limit_param="per_page"),
    records_path="results",
    native_id_paths=["document_number"],
    field_map={
        "title": ["title"],
        "funding_organization_name": ["agencies.0.name", "agencies.0.raw_name"],
        "funding_organization_code": ["agencies.0.slug", "agencies.0.id"],
        "source_url": ["html_url"],
        "posted_date": ["publication_date"],
        "funding_instrument": ["subtype", "type"],
        "description": ["abstract", "excerpts"],
    },
    constants={
        "funding_organization_name": "Federal Agency",
        "currency": "USD",
        "grant_type": "Funding Announcement",
    },
    amount_rules=[
        AmountRule(kind="text_money", paths=["abstract", "excerpts"], targets=["total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="agencies", category_type=CategoryType.TOPIC, name_key="name", code_key="slug"),
    ],
    default_cron="0 */6 * * *",
    priority=8,
)

USASPENDING = SourceConfig(
    name="usaspending",
    display_name="USAspending.gov",
    endpoint="https://api.usaspending.gov/api/v2/search/spending_by_award/",
    method="POST",
    base_params={
        "filters": {"award_type_codes": ["02", "03", "04", "05"]},
        "fields": [
            "Award ID", "Recipient Name", "Award Amount", "Total Outlays",
            "Start Date", "End Date", "Award Type", "Awarding Agency",
            "Awarding Sub Agency", "Description", "cfda_number", "cfda_title",
            "generated_internal_id",
        ],
        "sort": "Award Amount",
        "order": "desc",
    },
    pagination=PaginationConfig(style="page", page_size=100, page_param="page", limit_param="limit"),
    date_window=DateWindowConfig(
        from_param="filters.time_period.0.start_date",
        to_param="filters.time_period.0.end_date",
        days_back=365,
    ),
    records_path="results",
    native_id_paths=["Award ID", "generated_internal_id"],
    source_url_template="https://www.usaspending.gov/award/{generated_internal_id}",
    field_map={
        "title": ["Description", "cfda_title"],
        "funding_organization_name": ["Awarding Agency"],
        "funding_organization_code": ["Awarding Sub Agency"],
        "start_date": ["Start Date"],
        "end_date": ["End Date"],
        "grant_type": ["Award Type"],
        "funding_instrument": ["Award Type"],
        "activity_code": ["cfda_number"],
        "description": ["Description"],
    },
    constants={"title": "Federal Grant Award", "status": "awarded", "currency": "USD", "grant_type": "Grant"},
    amount_rules=[
        AmountRule(kind="field", paths=["Award Amount"], targets=["funding_amount_min", "funding_amount_max"]),
        AmountRule(kind="field", paths=["Total Outlays"], targets=["total_funding_available"]),
    ],
    category_rules=[
        CategoryRule(path="cfda_number", category_type=CategoryType.CFDA, name_template="CFDA {code}"),
        CategoryRule(path="Awarding Agency", category_type=CategoryType.TOPIC),
    ],
    default_cron="0 0 */2 * *",
    priority=3,
)

CALIFORNIA_GRANTS = SourceConfig(
    name="california_grants",
    display_name="California Grants Portal",
    endpoint="https://data.ca.gov/api/3/action/datastore_search",
    base_params={"resource_id": "111c8c88-21f6-453c-ae2c-b4785a0624f5", "sort": "ApplicationDeadline asc"},
    pagination=PaginationConfig(style="offset", page_size=100, offset_param="offset", limit_param="limit"),
    records_path="result.records",
    native_id_paths=["PortalID", "GrantID", "_id"],
    field_map={
        "title": ["Title"],
        "status": ["Status"],
        "funding_organization_name": ["AgencyDept"],
        "funding_organization_code": ["AgencyCode"],
        "source_url": ["GrantURL", "AgencyURL"],
        "total_funding_available": ["EstAvailFunds"],
        "expected_awards_count": ["EstAwards"],
        "posted_date": ["OpenDate"],
        "application_deadline": ["ApplicationDeadline"],
        "last_updated_date": ["LastUpdated"],
        "grant_type": ["Type"],
        "funding_instrument": ["FundingSource"],
        "description": ["Description"],
        "purpose": ["Purpose"],
        "additional_information": ["ApplicantTypeNotes"],
    },
    constants={"status": "open", "currency": "USD", "grant_type": "Grant"},
    status_map={"active": "open", "archived": "closed"},
    status_from_dates=True,
    amount_rules=[
        AmountRule(kind="range", paths=["EstAmounts"], targets=["funding_amount_min", "funding_amount_max"]),
    ],
    category_rules=[
        CategoryRule(path="Categories", category_type=CategoryType.TOPIC, split=";"),
    ],
    eligibility_rule=EligibilityRule(text_paths=["ApplicantType", "ApplicantTypeNotes"]),
    location_rules=[
        LocationRule(location_type=LocationType.ELIGIBLE, country="US", region="California"),
    ],
    default_cron="0 6,18 * * *",
    priority=7,
)

OPENALEX = SourceConfig(
    name="openalex",
    display_name="OpenAlex",
    endpoint="https://api.openalex.org/works",
    base_params={"filter": "has_fulltext:true,publication_year:>2020", "search": "grant OR funding"},
    pagination=PaginationConfig(style="page", page_size=100, page_param="page", limit_param="per_page"),
    records_path="results",
    include_rule=InclusionRule(required_paths=["grants.0.funder_display_name"]),
    native_id_templates=["{id}_{grants.0.funder_display_name}"],
    title_template="{grants.0.funder_display_name} Grant - {title}",
    field_map={
        "funding_organization_name": ["grants.0.funder_display_name"],
        "funding_organization_code": ["grants.0.award_id"],
        "source_url": ["doi", "id"],
        "posted_date": ["publication_date"],
        "description": ["abstract"],
    },
    constants={
        "status": "awarded",
        "currency": "USD",
        "grant_type": "Research Grant",
        "funding_instrument": "Research Grant",
    },
    category_rules=[
        CategoryRule(path="concepts", category_type=CategoryType.RESEARCH_AREA, name_key="display_name",
                     min_score=0.3, limit=5),
    ],
    keyword_rule=KeywordRule(paths=["topics"], name_key="display_name"),
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, list_path="authorships.0.institutions",
                     country_path="country_code"),
    ],
    default_cron="0 0 * * 0",
    priority=1,
)

NY_STATE = SourceConfig(
    name="ny_state",
    display_name="New York State Open Data",
    endpoint="https://data.ny.gov/resource/{partition}.json",
    base_params={"$order": ":id"},
    pagination=PaginationConfig(style="offset", page_size=500, offset_param="$offset", limit_param="$limit"),
    partitions=PartitionConfig(values=["j5ab-5nj2", "fc8g-rgwz", "a828-8j32"]),
    include_rule=InclusionRule(required_paths=["recipient_name"]),
    native_id_templates=[
        "{_partition}_{recipient_name}_{fiscal_year_end_date}",
        "{_partition}_{recipient_name}_{fiscal_year}",
    ],
    title_template="{authority_name} Grant to {recipient_name}",
    field_map={
        "funding_organization_name": ["authority_name"],
        "end_date": ["fiscal_year_end_date"],
        "description": ["purpose", "grant_purpose", "description"],
    },
    constants={
        "title": "New York State Grant",
        "status": "awarded",
        "funding_organization_name": "New York State",
        "funding_organization_code": "NYS",
        "currency": "USD",
        "grant_type": "State Grant",
        "funding_instrument": "State Grant",
    },
    amount_rules=[
        AmountRule(kind="field", paths=["grant_amount", "amount", "award_amount"],
                   targets=["funding_amount_min", "funding_amount_max"]),
    ],
    category_rules=[
        CategoryRule(path="authority_name", category_type=CategoryType.TOPIC),
    ],
    keyword_rule=KeywordRule(extra=["New York State"]),
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country="US", region_path="recipient_state",
                     region="NY", city_path="recipient_city"),
    ],
    default_cron="0 7 * * *",
    priority=4,
)

SAM_GOV = SourceConfig(
    name="sam_gov",
    display_name="SAM.gov Contract Opportunities",
    endpoint="https://api.sam.gov/opportunities/v2/search",
    auth=AuthConfig(scheme="api_key", param="api_key", location="query", settings_key="SAM_GOV_API_KEY"),
    base_params={"ptype": "s,p,r", "title": "grant OR cooperative agreement OR assistance OR funding opportunity"},
    pagination=PaginationConfig(style="offset", page_size=100, offset_param="offset", limit_param="limit"),
    date_window=DateWindowConfig(from_param="postedFrom", to_param="postedTo", days_back=30, date_format="%m/%d/%Y"),
    records_path="opportunitiesData",
    include_rule=InclusionRule(
        field_in={"type": ["s", "r", "Special Notice", "Sources Sought"]},
        text_paths=["title", "description"],
        text_contains_any=[
            "grant", "cooperative agreement", "assistance", "funding opportunity",
            "financial assistance", "award", "subsidy", "fellowship",
            "scholarship", "research funding", "program funding",
        ],
    ),
    native_id_paths=["noticeId"],
    source_url_template="https://sam.gov/opp/{noticeId}/view",
    field_map={
        "title": ["title"],
        "status": ["active"],
        "funding_organization_name": ["department", "fullParentPathName"],
        "funding_organization_code": ["fullParentPathCode", "organizationCode"],
        "source_url": ["uiLink"],
        "posted_date": ["postedDate"],
        "application_deadline": ["responseDeadLine"],
        "grant_type": ["type"],
        "description": ["description"],
    },
    constants={"currency": "USD", "funding_instrument": "Potential Grant Opportunity"},
    status_map={"yes": "open", "no": "closed"},
    amount_rules=[
        AmountRule(kind="field", paths=["award.amount", "awardFloor"], targets=["funding_amount_min"]),
        AmountRule(kind="field", paths=["award.amount", "awardCeiling"], targets=["funding_amount_max"]),
    ],
    category_rules=[
        CategoryRule(path="naicsCode", category_type=CategoryType.SECTOR, name_template="NAICS {code}"),
        CategoryRule(path="classificationCode", category_type=CategoryType.CUSTOM, name_template="PSC {code}"),
    ],
    location_rules=[
        LocationRule(location_type=LocationType.TARGET, country_path="placeOfPerformance.country.code",
                     region_path="placeOfPerformance.state.code", city_path="placeOfPerformance.city.name"),
    ],
    contact_rules=[
        ContactRule(contact_type="general", list_path="pointOfContact", name_paths=["fullName"],
                    email_path="email", phone_path="phone", title=None),
    ],
    default_cron="0 8 * * *",
    priority=2,
    requests_per_window=40,
)


SOURCE_CATALOG: Dict[str, SourceConfig] = {
    config.name: config
    for config in [
        GRANTS_GOV,
        EU_FUNDING_PORTAL,
        NIH_REPORTER,
        NSF_AWARDS,
        CANADIAN_OPEN_GOV,
        UKRI_GATEWAY,
        WORLD_BANK,
        FEDERAL_REGISTER,
        USASPENDING,
        CALIFORNIA_GRANTS,
        OPENALEX,
        NY_STATE,
        SAM_GOV,
    ]
}


def get_source_config(name: str) -> SourceConfig:
    """Look up a source by name, raising ConfigurationError for unknown names."""
    try:
        return SOURCE_CATALOG[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown source: {name}",
            context={"source": name, "known_sources": sorted(SOURCE_CATALOG)}
        )


def list_source_names() -> List[str]:
    """All catalog sources, highest priority first."""
    return [
        config.name
        for config in sorted(SOURCE_CATALOG.values(), key=lambda c: (-c.priority, c.name))
    ]
