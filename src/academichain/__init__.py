"""
AcademiChain: academic workflow orchestration over Jira and Confluence.

AcademiChain drives course administration (assignments, grading, project
proposal approvals, semester dashboards) by issuing requests against an
external issue tracker and an external knowledge base. All authoritative
state lives in those services; this package only builds and interprets the
requests that drive them.

Package layout (src/academichain/):
  core/        config, logging, exceptions, models, field mapping
  automation/  automation-rule descriptors and registration
  gateways/    Jira and Confluence REST façades
  workflow/    submission/grading executor, proposal approval
  dashboard/   cross-project statistics
  knowledge/   Confluence page templates
  api/         operation resolver for the presentation layer
  cli/         Click CLI entry point
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
