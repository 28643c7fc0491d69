"""
test_email_extractor.py — Tests for services/email_extractor.py

Covers the permissive pattern, placeholder filtering, non-dedup
behaviour, and name/role detection around each address.

Called by: pytest
Depends on: tenderlink/services/email_extractor.py
"""

from tenderlink.services.email_extractor import extract_contacts, extract_emails, is_placeholder


class TestExtractEmails:
    def test_finds_and_lowercases(self):
        assert extract_emails("Contact Jane@Example.org for details") == ["jane@example.org"]

    def test_multiple_in_order(self):
        text = "Procurement: buy@finance.gov.au, technical: tech@finance.gov.au"
        assert extract_emails(text) == ["buy@finance.gov.au", "tech@finance.gov.au"]

    def test_not_deduplicated(self):
        text = "a.b@dta.gov.au or A.B@DTA.gov.au"
        assert extract_emails(text) == ["a.b@dta.gov.au", "a.b@dta.gov.au"]

    def test_trailing_punctuation_dropped(self):
        assert extract_emails("Email jane@finance.gov.au.") == ["jane@finance.gov.au"]

    def test_placeholder_domains_filtered(self):
        text = "someone@example.com, x@test.com, real@agency.gov.au"
        assert extract_emails(text) == ["real@agency.gov.au"]

    def test_placeholder_labels_filtered(self):
        text = "a@test.gov.au b@qa.test.io c@example.com.au jane@example.org"
        assert extract_emails(text) == ["jane@example.org"]

    def test_noreply_filtered(self):
        text = "no-reply@buyict.gov.au noreply@buyict.gov.au DoNotReply@ato.gov.au"
        assert extract_emails(text) == []

    def test_empty_and_none(self):
        assert extract_emails("") == []
        assert extract_emails(None) == []

    def test_no_match(self):
        assert extract_emails("Please use the portal to submit questions.") == []


class TestIsPlaceholder:
    def test_subdomain_of_placeholder(self):
        assert is_placeholder("a@mail.example.com")

    def test_example_org_allowed(self):
        assert not is_placeholder("jane@example.org")

    def test_test_label_anywhere_in_domain(self):
        assert is_placeholder("a@test.gov.au")
        assert is_placeholder("b@qa.test.io")

    def test_example_with_any_suffix(self):
        assert is_placeholder("c@example.com.au")
        assert is_placeholder("d@example.co")

    def test_label_must_be_whole(self):
        assert not is_placeholder("a@contest.gov.au")
        assert not is_placeholder("a@examples.gov.au")

    def test_top_level_label_not_matched(self):
        assert not is_placeholder("a@agency.test")

    def test_subdomain_of_example_org_filtered(self):
        assert is_placeholder("a@mail.example.org")

    def test_noreply_on_allowed_domain(self):
        assert is_placeholder("noreply@example.org")

    def test_regular_address(self):
        assert not is_placeholder("jane@finance.gov.au")


class TestExtractContacts:
    def test_structured_field_provenance(self):
        found = extract_contacts("jane@finance.gov.au", "structured_field")
        assert len(found) == 1
        assert found[0].source_type == "structured_field"
        assert found[0].source_detail == "contact_field"
        assert found[0].confidence == 0.95

    def test_page_text_provenance(self):
        found = extract_contacts("Questions to jane@finance.gov.au", "page_text")
        assert found[0].source_detail == "description"
        assert found[0].confidence == 0.75

    def test_name_and_role(self):
        found = extract_contacts(
            "Contact Officer: Jane Smith <jane.smith@finance.gov.au>", "structured_field"
        )
        assert found[0].email == "jane.smith@finance.gov.au"
        assert found[0].name == "Jane Smith"
        assert found[0].role_label == "Contact Officer"

    def test_role_after_address(self):
        found = extract_contacts("bob@ato.gov.au (Enquiries)")
        assert found[0].role_label == "Enquiries"

    def test_no_name_for_single_word(self):
        found = extract_contacts("Contact jane@example.org for details")
        assert found[0].name is None
        assert found[0].role_label is None

    def test_name_only_from_same_line(self):
        found = extract_contacts("Jane Smith\njane@finance.gov.au")
        assert found[0].name is None

    def test_placeholders_skipped(self):
        assert extract_contacts("test@example.com") == []
