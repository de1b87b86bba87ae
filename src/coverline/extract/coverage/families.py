"""Dispatch table of coverage extractor families.

Each entry names the coverage types it serves, its prompt(s), optional
per-type context sentences, and the nested fields promoted into `details`.
"""

from coverline.extract.coverage.base import WILDCARD, CoverageFamily, Promote
from coverline.extract.coverage.prompts import (
    BUSINESS_AUTO_PROMPT,
    CLAIMS_MADE_PROMPT,
    COMMERCIAL_PROPERTY_PROMPT,
    CRIME_SURETY_PROMPTS,
    GENERAL_LIABILITY_PROMPT,
    GENERIC_PROMPT,
    MARINE_EQUIPMENT_PROMPT,
    PROPERTY_EXTENSION_PROMPT,
    SPECIALIZED_LIABILITY_PROMPTS,
    UMBRELLA_EXCESS_PROMPT,
    WORKERS_COMP_PROMPT,
)

GENERAL_LIABILITY = CoverageFamily(
    name="General Liability",
    coverage_types=("general_liability",),
    prompts={WILDCARD: GENERAL_LIABILITY_PROMPT},
    promoted=(
        Promote("products_completed_ops_aggregate", "decimal", "root"),
        Promote("personal_advertising_injury_limit", "decimal", "root"),
        Promote("fire_damage_limit", "decimal", "root"),
        Promote("medical_expense_limit", "decimal", "root"),
        Promote("aggregate_applies_to", "string", "root"),
        Promote("coverage_form_number", "string", "root"),
        Promote("has_additional_insured", "bool"),
        Promote("has_waiver_of_subrogation", "bool"),
        Promote("has_primary_noncontributory", "bool"),
        Promote("has_blanket_additional_insured", "bool"),
        Promote("endorsements", "list"),
        Promote("exclusions", "strings"),
        Promote("classification_codes", "list"),
    ),
)

UMBRELLA_EXCESS = CoverageFamily(
    name="Umbrella/Excess",
    coverage_types=("umbrella_excess",),
    prompts={WILDCARD: UMBRELLA_EXCESS_PROMPT},
    promoted=(
        Promote("self_insured_retention", "decimal"),
        Promote("is_following_form", "bool"),
        Promote("defense_coverage", "string"),
        Promote("underlying_requirements", "list"),
        Promote("retained_limit_gl", "decimal"),
        Promote("retained_limit_auto", "decimal"),
        Promote("retained_limit_el", "decimal"),
    ),
)

COMMERCIAL_PROPERTY = CoverageFamily(
    name="Commercial Property",
    coverage_types=("commercial_property",),
    prompts={WILDCARD: COMMERCIAL_PROPERTY_PROMPT},
    promoted=(
        Promote("locations", "list"),
        Promote("blanket_building_limit", "decimal"),
        Promote("blanket_contents_limit", "decimal"),
        Promote("blanket_bi_limit", "decimal"),
        Promote("valuation", "string"),
        Promote("coinsurance_percent", "decimal"),
        Promote("covered_perils", "string"),
        Promote("equipment_breakdown_included", "bool"),
        Promote("ordinance_or_law_included", "bool"),
        Promote("flood_included", "bool"),
        Promote("earthquake_included", "bool"),
        Promote("coverage_form_number", "string"),
        Promote("causes_of_loss_form", "string"),
    ),
)

BUSINESS_AUTO = CoverageFamily(
    name="Business Auto",
    coverage_types=("business_auto",),
    prompts={WILDCARD: BUSINESS_AUTO_PROMPT},
    promoted=(
        Promote("liability_limit", "decimal"),
        Promote("liability_limit_type", "string"),
        Promote("bodily_injury_per_person", "decimal"),
        Promote("bodily_injury_per_accident", "decimal"),
        Promote("property_damage_limit", "decimal"),
        Promote("um_uim_limit", "decimal"),
        Promote("medical_payments_limit", "decimal"),
        Promote("comprehensive_deductible", "decimal"),
        Promote("collision_deductible", "decimal"),
        Promote("hired_auto_included", "bool"),
        Promote("non_owned_auto_included", "bool"),
        Promote("rental_reimbursement", "decimal"),
        Promote("vehicles", "list"),
    ),
)

WORKERS_COMP = CoverageFamily(
    name="Workers Comp",
    coverage_types=("workers_compensation",),
    prompts={WILDCARD: WORKERS_COMP_PROMPT},
    promoted=(
        Promote("statutory_limits", "bool"),
        Promote("employers_liability_each_accident", "decimal"),
        Promote("employers_liability_disease_each", "decimal"),
        Promote("employers_liability_disease_policy", "decimal"),
        Promote("experience_mod", "decimal"),
        Promote("class_codes", "list"),
        Promote("states_covered", "strings"),
        Promote("other_states_coverage", "bool"),
        Promote("waiver_of_subrogation", "bool"),
        Promote("voluntary_compensation", "bool"),
        Promote("usl_h_coverage", "bool"),
    ),
)

CLAIMS_MADE_LIABILITY = CoverageFamily(
    name="Claims-Made Liability",
    coverage_types=(
        "professional_liability",
        "directors_officers",
        "employment_practices",
        "cyber_liability",
        "medical_malpractice",
    ),
    prompts={WILDCARD: CLAIMS_MADE_PROMPT},
    promoted=(
        Promote("defense_inside_limits", "bool"),
        Promote("extended_reporting_period_days", "int"),
        Promote("prior_acts_date", "string"),
        Promote("coverage_trigger", "string"),
        Promote("sublimits", "object"),
        Promote("exclusions", "strings"),
    ),
    context={
        "professional_liability": (
            "This is a Professional Liability / Errors & Omissions policy. Look for professional "
            "services coverage, wrongful acts, and malpractice terms."
        ),
        "directors_officers": (
            "This is a Directors & Officers policy. Look for Side A, Side B and Side C insuring "
            "agreements, entity coverage, and retentions per side."
        ),
        "employment_practices": (
            "This is an Employment Practices Liability policy. Look for wrongful termination, "
            "discrimination, harassment, and third-party coverage."
        ),
        "cyber_liability": (
            "This is a Cyber Liability policy. Look for data breach response, network security, "
            "ransomware, business interruption, and regulatory sublimits."
        ),
        "medical_malpractice": (
            "This is a Medical Malpractice policy. Look for per-claim and aggregate limits, "
            "consent-to-settle terms, and tail coverage."
        ),
    },
)

PROPERTY_EXTENSION = CoverageFamily(
    name="Property Extension",
    coverage_types=("wind_hail", "flood", "earthquake", "difference_in_conditions"),
    prompts={WILDCARD: PROPERTY_EXTENSION_PROMPT},
    promoted=(
        Promote("deductible_type", "string"),
        Promote("deductible_percentage", "decimal"),
        Promote("deductible_minimum", "decimal"),
        Promote("deductible_maximum", "decimal"),
        Promote("waiting_period_hours", "int"),
        Promote("sublimit", "decimal"),
        Promote("covered_perils", "strings"),
        Promote("excluded_perils", "strings"),
        Promote("locations", "list"),
    ),
    context={
        "wind_hail": (
            "This is Wind/Hail coverage. Look for named storm deductibles, percentage deductibles, "
            "and coastal location schedules."
        ),
        "flood": (
            "This is Flood coverage. Look for NFIP or excess flood limits, flood zones, and waiting periods."
        ),
        "earthquake": (
            "This is Earthquake coverage. Look for percentage deductibles, sprinkler leakage, and "
            "masonry veneer terms."
        ),
        "difference_in_conditions": (
            "This is Difference in Conditions (DIC) coverage. Look for the perils it adds over the "
            "primary property form and any sublimits."
        ),
    },
)

MARINE_EQUIPMENT = CoverageFamily(
    name="Marine/Equipment",
    coverage_types=("inland_marine", "ocean_marine", "builders_risk", "boiler_machinery"),
    prompts={WILDCARD: MARINE_EQUIPMENT_PROMPT},
    promoted=(
        Promote("covered_property_types", "strings"),
        Promote("valuation", "string"),
        Promote("territory", "string"),
        Promote("transit_coverage", "bool"),
        Promote("installation_coverage", "bool"),
        Promote("blanket_limit", "decimal"),
        Promote("leased_equipment", "bool"),
        Promote("scheduled_items", "list"),
        Promote("project_value", "decimal"),
        Promote("project_address", "string"),
        Promote("project_start_date", "string"),
        Promote("project_end_date", "string"),
        Promote("soft_costs_included", "bool"),
    ),
    context={
        "inland_marine": (
            "This is Inland Marine coverage. Look for contractors equipment, installation floaters, "
            "and scheduled property."
        ),
        "ocean_marine": (
            "This is Ocean Marine coverage. Look for cargo, hull, and protection & indemnity terms."
        ),
        "builders_risk": (
            "This is Builders Risk coverage. Look for the project value, address, construction "
            "period, and soft costs."
        ),
        "boiler_machinery": (
            "This is Boiler & Machinery / Equipment Breakdown coverage. Look for covered equipment, "
            "spoilage, and expediting expenses."
        ),
    },
)

SPECIALIZED_LIABILITY = CoverageFamily(
    name="Specialized Liability",
    coverage_types=tuple(SPECIALIZED_LIABILITY_PROMPTS),
    prompts=SPECIALIZED_LIABILITY_PROMPTS,
    copy_all_details=True,
)

CRIME_SURETY = CoverageFamily(
    name="Crime/Surety/Aviation",
    coverage_types=tuple(CRIME_SURETY_PROMPTS),
    prompts=CRIME_SURETY_PROMPTS,
    copy_all_details=True,
)

GENERIC = CoverageFamily(
    name="Generic",
    coverage_types=(WILDCARD,),
    prompts={WILDCARD: GENERIC_PROMPT},
    copy_all_details=True,
    request="Please extract all available information for this coverage type:",
)

# Specialized families, checked in order; GENERIC is the fallback
COVERAGE_FAMILIES: tuple[CoverageFamily, ...] = (
    GENERAL_LIABILITY,
    COMMERCIAL_PROPERTY,
    BUSINESS_AUTO,
    WORKERS_COMP,
    UMBRELLA_EXCESS,
    CLAIMS_MADE_LIABILITY,
    PROPERTY_EXTENSION,
    MARINE_EQUIPMENT,
    SPECIALIZED_LIABILITY,
    CRIME_SURETY,
)
