from setuptools import find_packages, setup

package_name = "hybrid_slam"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test", "test.*"]),
    data_files=[
        ("share/" + package_name + "/config", ["config/hybrid_base.yaml"]),
    ],
    python_requires=">=3.9",
    install_requires=["numpy", "scipy", "pydantic>=2", "pyyaml"],
    extras_require={"test": ["pytest"]},
    zip_safe=True,
    description="Decision-tree-indexed Gaussian mixture conditionals for hybrid factor-graph elimination",
    license="Apache-2.0",
    tests_require=["pytest"],
)
