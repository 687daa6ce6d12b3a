"""
Built-in QA dataset registry.

Used as the catalog source when no CATALOG_PATH is configured.
"""

from __future__ import annotations

from typing import Any, Dict, List


QA_DATASETS: List[Dict[str, Any]] = [
    {
        "id": "test_execution",
        "name": "Test Execution Results",
        "business_description": "Individual test run outcomes with timing, status, and execution details",
        "metrics": [
            {
                "id": "pass_rate",
                "name": "Pass Rate %",
                "business_description": "Percentage of tests that passed successfully",
                "technical_name": "pass_rate_percentage",
                "expression": "SUM(CASE WHEN status = 'PASSED' THEN 1 ELSE 0 END) * 100.0 / COUNT(*)",
                "value_type": "percentage",
                "display_format": "0.1%",
                "category": "quality",
            },
            {
                "id": "avg_duration",
                "name": "Average Test Duration",
                "business_description": "Mean time to complete test execution",
                "technical_name": "avg_duration_seconds",
                "expression": "AVG(duration_seconds)",
                "value_type": "duration",
                "display_format": "HH:mm:ss",
                "category": "performance",
            },
            {
                "id": "total_executions",
                "name": "Total Test Runs",
                "business_description": "Count of all test executions in the time period",
                "technical_name": "execution_count",
                "expression": "COUNT(*)",
                "value_type": "count",
                "display_format": "0,0",
                "category": "productivity",
            },
            {
                "id": "failure_rate",
                "name": "Failure Rate %",
                "business_description": "Percentage of tests that failed or had errors",
                "technical_name": "failure_rate_percentage",
                "expression": "SUM(CASE WHEN status IN ('FAILED', 'ERROR') THEN 1 ELSE 0 END) * 100.0 / COUNT(*)",
                "value_type": "percentage",
                "display_format": "0.1%",
                "category": "quality",
            },
            {
                "id": "automation_coverage",
                "name": "Automation Coverage %",
                "business_description": "Percentage of tests that are automated vs manual",
                "technical_name": "automation_percentage",
                "expression": "SUM(CASE WHEN test_type = 'automated' THEN 1 ELSE 0 END) * 100.0 / COUNT(*)",
                "value_type": "percentage",
                "display_format": "0.1%",
                "category": "coverage",
            },
            {
                "id": "tests_per_hour",
                "name": "Test Throughput (per hour)",
                "business_description": "Average number of tests executed per hour",
                "technical_name": "tests_per_hour",
                "expression": "COUNT(*) / (EXTRACT(EPOCH FROM (MAX(start_time) - MIN(start_time))) / 3600)",
                "value_type": "ratio",
                "display_format": "0.0",
                "category": "performance",
            },
        ],
        "dimensions": [
            {
                "id": "sprint_name",
                "name": "Sprint",
                "business_description": "Development sprint or iteration period",
                "technical_name": "sprint_name",
                "kind": "categorical",
                "allowed_values": ["Sprint 7", "Sprint 8", "Sprint 9", "Sprint 10"],
                "category": "time",
            },
            {
                "id": "test_type",
                "name": "Test Type",
                "business_description": "Manual vs automated test execution method",
                "technical_name": "test_type",
                "kind": "categorical",
                "allowed_values": ["Manual", "Automated"],
                "category": "classification",
            },
            {
                "id": "environment",
                "name": "Test Environment",
                "business_description": "Environment where tests were executed",
                "technical_name": "environment",
                "kind": "categorical",
                "allowed_values": ["QA", "Staging", "Production", "Dev"],
                "category": "environment",
            },
            {
                "id": "executor",
                "name": "Test Executor",
                "business_description": "Person or system that ran the tests",
                "technical_name": "executor_name",
                "kind": "categorical",
                "category": "team",
            },
            {
                "id": "test_suite",
                "name": "Test Suite",
                "business_description": "Grouped collection of related tests",
                "technical_name": "test_suite_name",
                "kind": "categorical",
                "category": "scope",
            },
            {
                "id": "execution_date",
                "name": "Execution Date",
                "business_description": "When the test was executed",
                "technical_name": "execution_date",
                "kind": "temporal",
                "category": "time",
            },
            {
                "id": "project",
                "name": "Project",
                "business_description": "Software project or application being tested",
                "technical_name": "project_name",
                "kind": "categorical",
                "allowed_values": ["Mobile App", "Web Portal", "API Services", "Admin Dashboard"],
                "category": "scope",
            },
        ],
        "filters": [
            {
                "id": "date_range",
                "name": "Date Range",
                "business_description": "Filter by when tests were executed",
                "technical_name": "execution_date",
                "kind": "daterange",
                "default_value": {"type": "relative", "value": "last_30_days"},
            },
            {
                "id": "status_filter",
                "name": "Test Status",
                "business_description": "Filter by test outcome",
                "technical_name": "status",
                "kind": "multiselect",
                "options": [
                    {"value": "PASSED", "label": "Passed"},
                    {"value": "FAILED", "label": "Failed"},
                    {"value": "ERROR", "label": "Error"},
                    {"value": "SKIPPED", "label": "Skipped"},
                ],
            },
            {
                "id": "duration_filter",
                "name": "Test Duration",
                "business_description": "Filter by how long tests took to run",
                "technical_name": "duration_seconds",
                "kind": "numeric",
                "default_value": {"min": 0, "max": 1800},
            },
        ],
        "related_dataset_ids": ["defect_tracking", "requirement_coverage"],
    },
    {
        "id": "defect_tracking",
        "name": "Bug & Defect Data",
        "business_description": "Issues and bugs found during testing with resolution tracking",
        "metrics": [
            {
                "id": "defect_density",
                "name": "Defect Density",
                "business_description": "Number of defects per 100 test cases",
                "technical_name": "defects_per_100_tests",
                "expression": "COUNT(DISTINCT defect_id) * 100.0 / COUNT(DISTINCT test_case_id)",
                "value_type": "ratio",
                "display_format": "0.00",
                "category": "quality",
            },
            {
                "id": "resolution_time",
                "name": "Average Resolution Time",
                "business_description": "Mean time from bug report to resolution",
                "technical_name": "avg_resolution_hours",
                "expression": "AVG(EXTRACT(EPOCH FROM (resolved_date - created_date)) / 3600)",
                "value_type": "duration",
                "display_format": '0.0" hours"',
                "category": "performance",
            },
            {
                "id": "open_defects",
                "name": "Open Defects",
                "business_description": "Count of unresolved bugs and issues",
                "technical_name": "open_defect_count",
                "expression": "COUNT(CASE WHEN status != 'RESOLVED' THEN 1 END)",
                "value_type": "count",
                "display_format": "0,0",
                "category": "quality",
            },
            {
                "id": "critical_defects",
                "name": "Critical Issues",
                "business_description": "High-priority bugs that block testing or release",
                "technical_name": "critical_defect_count",
                "expression": "COUNT(CASE WHEN priority IN ('Critical', 'High') THEN 1 END)",
                "value_type": "count",
                "display_format": "0,0",
                "category": "quality",
            },
        ],
        "dimensions": [
            {
                "id": "severity",
                "name": "Bug Severity",
                "business_description": "Impact level of the defect",
                "technical_name": "severity",
                "kind": "ordinal",
                "allowed_values": ["Critical", "High", "Medium", "Low"],
                "category": "classification",
            },
            {
                "id": "component",
                "name": "Component",
                "business_description": "Application component where bug was found",
                "technical_name": "component_name",
                "kind": "categorical",
                "category": "scope",
            },
            {
                "id": "assignee",
                "name": "Assigned Developer",
                "business_description": "Person responsible for fixing the bug",
                "technical_name": "assignee_name",
                "kind": "categorical",
                "category": "team",
            },
            {
                "id": "defect_type",
                "name": "Defect Type",
                "business_description": "Category of the issue found",
                "technical_name": "defect_type",
                "kind": "categorical",
                "allowed_values": ["Functional", "UI/UX", "Performance", "Security", "Integration"],
                "category": "classification",
            },
        ],
        "filters": [
            {
                "id": "priority_filter",
                "name": "Priority Level",
                "business_description": "Filter by bug priority",
                "technical_name": "priority",
                "kind": "multiselect",
                "options": [
                    {"value": "Critical", "label": "Critical"},
                    {"value": "High", "label": "High"},
                    {"value": "Medium", "label": "Medium"},
                    {"value": "Low", "label": "Low"},
                ],
            },
        ],
        "related_dataset_ids": [],
    },
    {
        "id": "requirement_coverage",
        "name": "Requirement Coverage",
        "business_description": "Test coverage analysis mapped to business requirements and user stories",
        "metrics": [
            {
                "id": "coverage_percentage",
                "name": "Coverage %",
                "business_description": "Percentage of requirements that have test cases",
                "technical_name": "coverage_percentage",
                "expression": "COUNT(CASE WHEN test_count > 0 THEN 1 END) * 100.0 / COUNT(*)",
                "value_type": "percentage",
                "display_format": "0.1%",
                "category": "coverage",
            },
            {
                "id": "untested_requirements",
                "name": "Untested Requirements",
                "business_description": "Count of requirements without any test coverage",
                "technical_name": "untested_count",
                "expression": "COUNT(CASE WHEN test_count = 0 THEN 1 END)",
                "value_type": "count",
                "display_format": "0,0",
                "category": "coverage",
            },
        ],
        "dimensions": [
            {
                "id": "requirement_priority",
                "name": "Requirement Priority",
                "business_description": "Business priority of the requirement",
                "technical_name": "requirement_priority",
                "kind": "ordinal",
                "allowed_values": ["Must Have", "Should Have", "Could Have", "Won't Have"],
                "category": "classification",
            },
            {
                "id": "feature_area",
                "name": "Feature Area",
                "business_description": "Functional area of the application",
                "technical_name": "feature_area",
                "kind": "categorical",
                "category": "scope",
            },
        ],
        "filters": [],
        "related_dataset_ids": [],
    },
]
