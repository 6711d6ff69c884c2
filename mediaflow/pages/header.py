from __future__ import annotations

import html
import logging
import time
from typing import Optional

from mediaflow.css.utils import style_block

timing_logger = logging.getLogger("uvicorn.error")

PRODUCT_NAME = "MediaFlow"

FORCE_LIGHT_MODE_SCRIPT = """
<script>
(function() {
  const applyLightMode = () => {
    const setLight = (el) => {
      if (!el) return;
      if (el.getAttribute("data-theme") !== "light") {
        el.setAttribute("data-theme", "light");
      }
      if (el.classList.contains("dark")) {
        el.classList.remove("dark");
      }
      el.style.colorScheme = "light";
    };
    [document.documentElement, document.body].forEach(setLight);
    document.querySelectorAll("gradio-app, .gradio-container").forEach(setLight);
    try {
      localStorage.setItem("theme", "light");
    } catch (err) {}
  };

  const applyTitle = () => {
    document.title = "MediaFlow";
  };

  applyLightMode();
  applyTitle();

  const observer = new MutationObserver(() => {
    applyLightMode();
  });
  observer.observe(document.documentElement, {
    attributes: true,
    childList: true,
    subtree: true,
    attributeFilter: ["class", "data-theme"],
  });
})();
</script>
""".strip()

GOOGLE_BUTTON_HTML = """
<a href="/auth/google" class="google-btn-pill" aria-label="Sign in with Google">
  <span class="google-icon-wrapper">
    <svg class="google-icon" viewBox="0 0 18 18" xmlns="http://www.w3.org/2000/svg" role="img" aria-hidden="true">
      <path fill="#4285F4" d="M17.64 9.2045c0-.638-.0573-1.2518-.1636-1.836H9v3.4763h4.844c-.208 1.125-.842 2.0777-1.795 2.7156v2.258h2.896c1.696-1.561 2.665-3.86 2.665-6.6139z"/>
      <path fill="#34A853" d="M9 18c2.43 0 4.467-.806 5.956-2.186l-2.896-2.258c-.805.54-1.836.863-3.06.863-2.351 0-4.341-1.588-5.05-3.72H.945v2.337C2.423 15.98 5.481 18 9 18z"/>
      <path fill="#FBBC05" d="M3.95 10.699c-.18-.54-.281-1.119-.281-1.699s.101-1.159.281-1.699V4.965H.945a9.002 9.002 0 000 8.07l3.005-2.336z"/>
      <path fill="#EA4335" d="M9 3.579c1.32 0 2.508.451 3.44 1.337l2.582-2.583C13.462.917 11.425 0 9 0 5.481 0 2.423 2.02.945 4.965l3.005 2.336C4.659 5.167 6.649 3.579 9 3.579z"/>
    </svg>
  </span>
  <span class="btn-text">Sign in with Google</span>
</a>
""".strip()


def _log_timing(event_name: str, start: float, **fields: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if fields:
        field_text = " ".join(f"{key}={value}" for key, value in fields.items())
        timing_logger.info("header.timing event=%s ms=%.2f %s", event_name, elapsed_ms, field_text)
        return
    timing_logger.info("header.timing event=%s ms=%.2f", event_name, elapsed_ms)


def with_light_mode_head(head: Optional[str]) -> str:
    if head and head.strip():
        return f"{head}\n{FORCE_LIGHT_MODE_SCRIPT}"
    return FORCE_LIGHT_MODE_SCRIPT


def _account_html(user: dict) -> str:
    name = html.escape(user.get("name") or user.get("email") or "Signed in")
    email = html.escape(user.get("email") or "")
    photo = (user.get("picture") or "").strip()
    initial = html.escape((user.get("name") or user.get("email") or "?")[0].upper())

    avatar = (
        f'<img class="avatar-img" src="{html.escape(photo)}" alt="{name}" referrerpolicy="no-referrer" loading="lazy" />'
        if photo
        else f'<div class="avatar-circle">{initial}</div>'
    )

    return f"""
<details class="account-menu">
  <summary class="account-btn" aria-label="Account of {name}">
    {avatar}
    <div class="account-meta">
      <div class="account-name">{name}</div>
      <div class="account-email">{email}</div>
    </div>
    <span class="account-caret" aria-hidden="true"></span>
  </summary>
  <div class="account-dropdown" role="menu">
    <a href="/logout" role="menuitem" class="menu-link">Sign out</a>
  </div>
</details>""".strip()


def render_header(user: Optional[dict], subtitle: Optional[str] = None) -> str:
    """Top bar: product name, optional dashboard subtitle, account menu or sign-in button."""
    start = time.perf_counter()
    account = _account_html(user) if user else GOOGLE_BUTTON_HTML
    subtitle_html = f'<span class="hdr-subtitle">{html.escape(subtitle)}</span>' if subtitle else ""
    html_value = f"""{style_block("header.css")}
<div class="hdr-wrap">
  <div class="hdr">
    <a href="/?home=1" class="site-logo" aria-label="Home">
      <span class="logo-mark" aria-hidden="true">▲</span>
      <span class="logo-text">{PRODUCT_NAME}</span>
    </a>
    {subtitle_html}
    <div class="hdr-spacer"></div>
    {account}
  </div>
</div>
"""
    _log_timing("render_header", start, html_bytes=len(html_value), user_present=bool(user))
    return html_value
