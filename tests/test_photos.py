from carpark_scraper.photos import classify_variant, clean_photo_set, upgrade_image_url


def test_filters_chrome_placeholders_and_foreign_hosts():
    ps = clean_photo_set([
        "data:image/gif;base64,AAAA",
        "https://www.28hse.com/assets/images/logo.png",
        "https://i1.28hse.com/assets/banner_top.jpg",
        "https://i2.28hse.com/2024/01/appstore_badge.png",
        "https://cdn.example.com/2024/01/1_large.jpg",
        "https://i3.28hse.com/2024/01/file.pdf",
        "https://i3.28hse.com/2024/01/image.png",
        "https://i3.28hse.com/2024/01/real.jpg",
    ])
    assert ps.photos == ["https://i3.28hse.com/2024/01/real.jpg"]
    assert ps.cover == "https://i3.28hse.com/2024/01/real.jpg"


def test_relative_urls_resolve_against_site():
    ps = clean_photo_set(["//img.28hse.com/a/b_thumb.webp"])
    assert ps.photos == ["https://img.28hse.com/a/b_thumb.webp"]


def test_dedupes_on_canonical_url_and_orders_by_variant():
    ps = clean_photo_set([
        "https://i1.28hse.com/resize/120x90/p/1_thumb.jpg",
        "https://i1.28hse.com/p/1.jpg",
        "https://i1.28hse.com/p/1_thumb.jpg",
        "https://photo.28hse.com/p/1desktop.jpg",
        "https://i1.28hse.com/resize/800x600/p/1_large.jpg",
        "https://i1.28hse.com/p/1_large.jpg",
    ])
    assert ps.photos == [
        "https://i1.28hse.com/p/1_large.jpg",
        "https://photo.28hse.com/p/1desktop.jpg",
        "https://i1.28hse.com/p/1.jpg",
        "https://i1.28hse.com/p/1_thumb.jpg",
    ]
    assert len(ps.photos) == len(set(ps.photos))
    assert ps.cover == ps.photos[0]
    assert ps.image_full == ["https://i1.28hse.com/p/1_large.jpg"]
    assert ps.image_thumbs == ["https://i1.28hse.com/p/1_thumb.jpg"]


def test_empty_input_has_no_cover():
    ps = clean_photo_set([])
    assert ps.photos == []
    assert ps.cover is None
    assert ps.image_full == []


def test_cover_is_always_a_member():
    for candidates in (
        ["https://i1.28hse.com/x/a_thumb.jpg"],
        ["https://i1.28hse.com/x/a.jpg", "https://i1.28hse.com/x/b_large.png"],
        [None, "", "https://i9.28hse.com/x/c.gif"],
    ):
        ps = clean_photo_set(candidates)
        assert ps.cover in ps.photos


def test_upgrade_and_classify():
    assert upgrade_image_url("https://i1.28hse.com/resize/300x200/a/b.jpg") == "https://i1.28hse.com/a/b.jpg"
    assert classify_variant("https://i1.28hse.com/a/b_large.jpg") == "large"
    assert classify_variant("https://i1.28hse.com/a/bdesktop.jpg") == "desktop"
    assert classify_variant("https://i1.28hse.com/a/b.jpg") == "orig"
