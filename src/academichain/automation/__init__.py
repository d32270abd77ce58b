"""Automation-rule descriptors registered with the issue tracker."""
