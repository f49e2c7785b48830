from lead_cascade.extraction import (
    canonicalize_url,
    domain_from_url,
    extract_emails,
    extract_social_links,
    find_contact_links,
    is_profile_url,
    platform_for_url,
)


def test_extract_emails_normalizes_and_dedupes() -> None:
    text = "Contact A@Example.com, again a@example.com, and b@example.org. logo@2x.png"
    assert extract_emails(text) == {"a@example.com", "b@example.org"}


def test_find_contact_links_collects_mailto_and_contact_pages() -> None:
    html = """
    <html>
      <body>
        <a href="/contact">Contact</a>
        <a href="/contact">Contact Again</a>
        <a href="/submissions">Submit music</a>
        <a href="mailto:Team@example.com?subject=Hello">Email us</a>
      </body>
    </html>
    """
    links = find_contact_links(html, "https://example.com/path")
    assert links == [
        "https://example.com/contact",
        "https://example.com/submissions",
        "mailto:Team@example.com",
    ]


def test_url_helpers() -> None:
    assert canonicalize_url("/about#team", "https://example.com/home") == "https://example.com/about"
    assert domain_from_url("https://Sub.Example.com/path") == "sub.example.com"
    assert domain_from_url("https://www.example.com") == "example.com"


def test_platform_and_profile_detection() -> None:
    assert platform_for_url("https://x.com/kea") == "twitter"
    assert platform_for_url("https://za.linkedin.com/in/kea") == "linkedin"
    assert platform_for_url("https://notinstagram.com/kea") == ""
    assert is_profile_url("https://www.instagram.com/kea/") is True
    assert is_profile_url("https://www.instagram.com/p/abc123/") is False
    assert is_profile_url("https://www.tiktok.com/") is False


def test_extract_social_links_keeps_first_profile_per_platform() -> None:
    html = """
    <a href="https://www.instagram.com/p/post1/">post</a>
    <a href="https://www.instagram.com/amapianodaily/">ig</a>
    <a href="https://www.instagram.com/someone_else/">ig2</a>
    <a href="https://twitter.com/amapianodaily#top">tw</a>
    """
    assert extract_social_links(html, "https://amapianodaily.co.za") == {
        "instagram": "https://www.instagram.com/amapianodaily/",
        "twitter": "https://twitter.com/amapianodaily",
    }
