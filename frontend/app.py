import base64
import os

import streamlit as st
from dotenv import load_dotenv

import api_client


load_dotenv()

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
API_URL = f"{API_BASE_URL}/_api"

SEASONS = ["", "spring", "summer", "fall", "winter"]
OCCASIONS = ["", "casual", "formal", "business", "party", "date", "vacation"]
STYLES = ["", "minimalist", "bohemian", "classic", "trendy", "edgy", "romantic"]

# --- Initialize session state ---
# One requests.Session per browser tab so the backend's session cookie sticks
if 'http' not in st.session_state:
    st.session_state.http = api_client.make_http_session()

if 'user' not in st.session_state:
    st.session_state.user = None

if 'feed_cursor' not in st.session_state:
    st.session_state.feed_cursor = None

if 'outfit' not in st.session_state:
    st.session_state.outfit = []

if 'recommendations' not in st.session_state:
    st.session_state.recommendations = []


# --- Helper Functions ---
def api_call(method, path, **kwargs):
    """Returns (data, error); callers show the error where the call was made."""
    return api_client.api_call(st.session_state.http, API_URL, method, path, **kwargs)


def refresh_session():
    # A missing session is not an error worth showing
    data, _ = api_call("GET", "/auth/session")
    st.session_state.user = data["user"] if data else None


# Pick up an existing session cookie once per browser tab
if st.session_state.user is None and 'session_checked' not in st.session_state:
    st.session_state.session_checked = True
    refresh_session()


# --- Sidebar: account ---
st.sidebar.header("Account")
if st.session_state.user is None:
    mode = st.sidebar.radio("Mode", ["Log in", "Register"], horizontal=True)
    with st.sidebar.form(key="auth_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        display_name = st.text_input("Display name") if mode == "Register" else ""
        submitted = st.form_submit_button(label=mode)

    if submitted:
        if mode == "Register":
            data, error = api_call("POST", "/auth/register_with_password",
                                   json={"email": email, "password": password, "displayName": display_name})
        else:
            data, error = api_call("POST", "/auth/login_with_password", json={"email": email, "password": password})
        if error:
            st.sidebar.error(error)
        else:
            st.session_state.user = data["user"]
            st.rerun()
else:
    user = st.session_state.user
    st.sidebar.write(f"Signed in as **{user['displayName']}** ({user['email']})")
    unread, error = api_call("GET", "/notifications/unread-count")
    if error:
        st.sidebar.error(error)
    else:
        st.sidebar.caption(f"🔔 {unread['count']} unread notification(s)")
    if st.sidebar.button("Log out"):
        _, error = api_call("POST", "/auth/logout")
        st.session_state.user = None
        if error:
            st.sidebar.error(error)
        else:
            st.rerun()


# --- Main App Interface ---
st.title("💄 GlamScan")

feed_tab, combos_tab, outfit_tab, selfie_tab = st.tabs(["Feed", "Style Combos", "AI Outfit", "Selfie Match"])

# --- Feed ---
with feed_tab:
    if st.session_state.user:
        with st.expander("Share a look"):
            with st.form(key="post_form", clear_on_submit=True):
                image = st.file_uploader("Photo", type=["jpg", "jpeg", "png", "webp"])
                caption = st.text_area("Caption", max_chars=2200)
                post_submitted = st.form_submit_button("Post")
            if post_submitted:
                if image is None:
                    st.warning("⚠️ Please choose a photo.")
                else:
                    _, error = api_call(
                        "POST", "/posts/create",
                        files={"image": (image.name, image.getvalue(), image.type)},
                        data={"caption": caption},
                    )
                    if error:
                        st.error(error)
                    else:
                        st.success("Posted!")

    params = {"limit": 10}
    if st.session_state.feed_cursor:
        params["cursor"] = st.session_state.feed_cursor
    feed, error = api_call("GET", "/posts/feed", params=params)
    if error:
        st.error(error)

    if feed:
        for post in feed["posts"]:
            st.markdown(f"**{post['authorDisplayName']}**")
            image_url = post["imageUrl"]
            st.image(image_url if image_url.startswith("http") else f"{API_BASE_URL}{image_url}")
            if post.get("caption"):
                st.write(post["caption"])
            up_col, down_col, _ = st.columns([1, 1, 4])
            for col, vote_type, label in [(up_col, "upvote", f"▲ {post['upvotes']}"),
                                          (down_col, "downvote", f"▼ {post['downvotes']}")]:
                with col:
                    if st.button(label, key=f"{vote_type}_{post['id']}", disabled=not st.session_state.user):
                        _, error = api_call("POST", "/posts/vote", json={"postId": post["id"], "voteType": vote_type})
                        if error:
                            st.error(error)
                        else:
                            st.rerun()
            st.markdown("---")

        nav_prev, nav_next = st.columns(2)
        with nav_prev:
            if st.session_state.feed_cursor and st.button("⟲ Back to newest"):
                st.session_state.feed_cursor = None
                st.rerun()
        with nav_next:
            if feed["nextCursor"] and st.button("Older posts →"):
                st.session_state.feed_cursor = feed["nextCursor"]
                st.rerun()

# --- Style combos ---
with combos_tab:
    filter_cols = st.columns(4)
    season = filter_cols[0].selectbox("Season", SEASONS)
    occasion = filter_cols[1].selectbox("Occasion", OCCASIONS)
    style = filter_cols[2].selectbox("Style", STYLES)
    search = filter_cols[3].text_input("Search")

    params = {k: v for k, v in {"season": season, "occasion": occasion, "style": style, "search": search}.items() if v}
    combos, error = api_call("GET", "/style-combos/list", params=params)
    if error:
        st.error(error)

    if combos:
        st.caption(f"{combos['totalCount']} combo(s)")
        for combo in combos["styleCombos"]:
            with st.expander(f"{combo['title']} - ${combo['totalPrice']:.2f}"):
                st.image(combo["coverImageUrl"])
                if combo.get("description"):
                    st.write(combo["description"])
                for item in combo["items"]:
                    link = item.get("affiliateUrl") or combo["shopUrl"]
                    st.markdown(f"- [{item['name']}]({link}) ${item['price']:.2f}")
                st.link_button("Shop the look", combo["shopUrl"])
                if st.session_state.user and st.button("🔖 Save / Unsave", key=f"save_{combo['id']}"):
                    toggled, error = api_call("POST", "/saved-items/toggle",
                                              json={"itemId": combo["id"], "itemType": "style_combo"})
                    if error:
                        st.error(error)
                    else:
                        st.toast("Saved" if toggled["saved"] else "Removed from saved items")

# --- AI outfit ---
with outfit_tab:
    if not st.session_state.user:
        st.info("Log in to get AI outfit ideas.")
    else:
        with st.form(key="outfit_form"):
            outfit_occasion = st.text_input("Occasion", placeholder="e.g. summer wedding")
            outfit_style = st.text_input("Style", placeholder="e.g. romantic")
            budget = st.number_input("Budget (USD)", min_value=0.0, value=0.0, step=10.0)
            other = st.text_area("Anything else?", max_chars=500)
            outfit_submitted = st.form_submit_button(label="✨ Generate Outfit")

        if outfit_submitted:
            payload = {
                "occasion": outfit_occasion or None,
                "style": outfit_style or None,
                "budget": budget or None,
                "otherPreferences": other or None,
            }
            with st.spinner("🤖 Styling your outfit... Please wait."):
                data, error = api_call("POST", "/ai-outfit/generate", json={k: v for k, v in payload.items() if v is not None})
            st.session_state.outfit = data["outfit"] if data else []
            if error:
                st.error(error)

        for item in st.session_state.outfit:
            st.markdown(f"**{item['category']}: [{item['name']}]({item['affiliateUrl']})** ${item['price']:.2f}")
            st.caption(item["description"])

# --- Selfie recommendations ---
with selfie_tab:
    if not st.session_state.user:
        st.info("Log in to match your selfie against our style combos.")
    else:
        selfie = st.camera_input("Take a selfie") or st.file_uploader("...or upload one", type=["jpg", "jpeg", "png", "webp"])
        if selfie is not None and st.button("🔍 Find my looks"):
            data_url = f"data:{selfie.type};base64,{base64.b64encode(selfie.getvalue()).decode('ascii')}"
            with st.spinner("🤖 Analysing your selfie... Please wait."):
                data, error = api_call("POST", "/recommendations/generate", json={"selfieBase64": data_url})
            st.session_state.recommendations = data["recommendations"] if data else []
            if error:
                st.error(error)

        for rec in st.session_state.recommendations:
            icon = "💋" if rec["type"] == "makeup" else "👗"
            st.markdown(f"{icon} **[{rec['name']}]({rec['affiliateUrl']})** ${rec['price']:.2f}")
            st.caption(rec["description"])

st.markdown("---")
st.caption("GlamScan Prototype")
