"""
Platform Selector Tables
========================
Fixed CSS selectors for sites whose markup is stable enough to script
directly. Every adapter reads the same table shape:

    login / navigation / search / job_details / apply / confirmation

Selectors drift when a site ships a redesign; a failing Easy Apply run
should start with a look at the screenshots and then at this file.
"""

CAPTCHA_FRAMES = 'iframe[src*="captcha"], iframe[title*="challenge" i], iframe[src*="arkoselabs"]'

LINKEDIN_URLS = {
    "base": "https://www.linkedin.com",
    "login": "https://www.linkedin.com/login",
    "feed": "https://www.linkedin.com/feed/",
    "jobs": "https://www.linkedin.com/jobs/",
    "job_search": "https://www.linkedin.com/jobs/search/",
    "applied_jobs": "https://www.linkedin.com/my-items/applied-jobs/",
}

LINKEDIN_SELECTORS = {
    "login": {
        "email_input": "#username",
        "password_input": "#password",
        "submit_button": 'button[type="submit"]',
        "error_message": ".form__label--error",
        "captcha_frame": CAPTCHA_FRAMES,
    },
    "navigation": {
        "profile_icon": ".global-nav__me-photo",
        "jobs_link": 'a[href*="/jobs"]',
    },
    "search": {
        "job_cards": ".jobs-search-results__list-item",
        "job_title": ".job-card-list__title",
        "company_name": ".job-card-container__company-name",
        "location": ".job-card-container__metadata-item",
        "easy_apply_badge": ".job-card-container__apply-method",
    },
    "job_details": {
        "container": ".jobs-details",
        "title": ".job-details-jobs-unified-top-card__job-title",
        "company": ".job-details-jobs-unified-top-card__company-name",
        "location": ".job-details-jobs-unified-top-card__bullet",
        "description": ".jobs-description-content__text",
        "apply_button": ".jobs-apply-button--top-card",
        "applicant_count": ".jobs-unified-top-card__applicant-count",
    },
    "apply": {
        "modal": ".jobs-easy-apply-modal",
        "next_button": 'button[aria-label="Continue to next step"]',
        "review_button": 'button[aria-label="Review your application"]',
        "submit_button": 'button[aria-label="Submit application"]',
        "close_button": 'button[aria-label="Dismiss"]',
        "error_messages": ".artdeco-inline-feedback--error",
        "follow_company": 'input[name="followCompany"]',
        "fields": {
            "first_name": 'input[name="firstName"]',
            "last_name": 'input[name="lastName"]',
            "email": 'input[name="email"]',
            "phone": 'input[name="phone"]',
            "city": 'input[name="city"]',
            "resume": 'input[type="file"][name*="resume"]',
        },
        "questions": {
            "years_experience": 'input[name*="years"]',
            "sponsorship": 'input[name*="visa"]',
            "work_authorization": 'select[name*="authorization"]',
            "salary_expectation": 'input[name*="salary"]',
        },
    },
    "confirmation": {
        "success_message": ".artdeco-toast-item--visible, .jobs-apply-form-confirmation",
    },
}

INDEED_URLS = {
    "base": "https://www.indeed.com",
    "login": "https://secure.indeed.com/auth",
    "feed": "https://www.indeed.com/",
    "jobs": "https://www.indeed.com/jobs",
    "job_search": "https://www.indeed.com/jobs",
    "view_job": "https://www.indeed.com/viewjob",
    "applied_jobs": "https://www.indeed.com/myjobs",
}

INDEED_SELECTORS = {
    "login": {
        "email_input": '#ifl-InputFormField-3, input[type="email"]',
        "password_input": '#ifl-InputFormField-7, input[type="password"]',
        "submit_button": 'button[type="submit"]',
        "error_message": ".icl-Alert--error",
        "captcha_frame": CAPTCHA_FRAMES,
    },
    "navigation": {
        "profile_icon": '[data-gnav-element-name="Profile"]',
        "sign_out_link": 'a[href*="/account/logout"]',
    },
    "search": {
        "job_cards": ".job_seen_beacon, .resultContent",
        "job_title": ".jobTitle > a, h2.jobTitle a",
        "company_name": '.companyName, [data-testid="company-name"]',
        "location": '.companyLocation, [data-testid="text-location"]',
        "salary": ".salary-snippet-container, .estimated-salary",
        "easy_apply_badge": ".iaLabel, .indeed-apply-badge",
    },
    "job_details": {
        "container": "#jobDescriptionText, .jobsearch-JobComponent",
        "title": '.jobsearch-JobInfoHeader-title, h1[data-testid="jobsearch-JobInfoHeader-title"]',
        "company": '.jobsearch-InlineCompanyRating-companyHeader a, [data-testid="inlineHeader-companyName"]',
        "location": '.jobsearch-JobInfoHeader-subtitle > div:first-child, [data-testid="job-location"]',
        "description": "#jobDescriptionText",
        "salary": '#salaryInfoAndJobType, [data-testid="attribute_snippet_testid"]',
        "apply_button": "#indeedApplyButton, .jobsearch-IndeedApplyButton-newDesign",
        "external_apply_button": 'button[id*="apply"], .jobsearch-ApplyButton-buttonWrapper a',
    },
    "apply": {
        "modal": ".indeed-apply-modal, #indeed-ia-modal",
        "next_button": 'button[data-testid="ia-continueButton"], .ia-continueButton',
        "submit_button": 'button[data-testid="ia-submitButton"], .ia-submitButton',
        "close_button": 'button[aria-label="Close"], .ia-Modal-close',
        "error_messages": ".indeed-apply-error, .ia-error-message",
        "fields": {
            "first_name": 'input[name="firstName"], #input-firstName',
            "last_name": 'input[name="lastName"], #input-lastName',
            "email": 'input[name="email"], #input-email',
            "phone": 'input[name="phoneNumber"], #input-phoneNumber',
            "city": 'input[name="city"]',
            "resume": 'input[type="file"][name*="resume"]',
            "cover_letter": 'textarea[name="coverLetter"], #input-coverLetter',
        },
        "questions": {
            "years_experience": 'input[name*="experience"]',
            "sponsorship": 'input[type="radio"][name*="sponsor"]',
            "work_authorization": 'select[name*="authorization"]',
            "salary_expectation": 'input[name*="salary"]',
        },
    },
    "confirmation": {
        "success_message": '.ia-success-message, [data-testid="applied-success"], .ia-Confirmation',
    },
}
