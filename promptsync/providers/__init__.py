"""
Git Providers — Fetch repository trees and file contents.

GitHub and Azure DevOps are supported over their REST APIs; the mock
provider serves in-memory repositories for tests.
"""
